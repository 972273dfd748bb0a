# deps/store.py
from app.notifications.dispatcher import NotificationDispatcher, get_dispatcher as _default_dispatcher
from app.storage import get_store as _default_store


def get_store():
    return _default_store()


def get_dispatcher() -> NotificationDispatcher:
    return _default_dispatcher()
