from __future__ import annotations

import re
from typing import Any


_EMAIL_RE = re.compile(r"\b([A-Za-z0-9._%+-]+)@([A-Za-z0-9.-]+\.[A-Za-z]{2,})\b")

_SENSITIVE_KEY_MARKERS = (
    "token",
    "authorization",
    "secret",
    "api_key",
    "password",
)


def mask_account_number(value: str) -> str:
    if not value:
        return ""
    if len(value) <= 4:
        return value
    return "*" * (len(value) - 4) + value[-4:]


def mask_upi_id(value: str) -> str:
    if not value:
        return ""
    parts = value.split("@")
    if len(parts) != 2:
        return value
    username, domain = parts
    if len(username) <= 2:
        return value
    return username[:2] + "*" * (len(username) - 2) + "@" + domain


def mask_ifsc(value: str) -> str:
    if not value:
        return ""
    if len(value) <= 4:
        return value
    return value[:4] + "*" * (len(value) - 4)


def mask_phone(value: str) -> str:
    if not value:
        return ""
    digits = re.sub(r"\D", "", value)
    if len(digits) <= 4:
        return value
    return "*" * (len(digits) - 4) + digits[-4:]


def mask_email(value: str) -> str:
    if not value:
        return ""
    parts = value.split("@")
    if len(parts) != 2:
        return value
    username, domain = parts
    if len(username) <= 2:
        return value
    return username[:2] + "*" * min(len(username) - 2, 6) + "@" + domain


def _is_sensitive_key(key: str) -> bool:
    key_l = (key or "").lower()
    return any(marker in key_l for marker in _SENSITIVE_KEY_MARKERS)


def mask_field(key: str, value: Any) -> Any:
    if not isinstance(value, str) or not value:
        return value

    key_l = (key or "").lower()
    if _is_sensitive_key(key_l):
        return "[REDACTED]"
    if ("account" in key_l and "name" not in key_l) or "acc_no" in key_l or "iban" in key_l:
        return mask_account_number(value)
    if "upi" in key_l or "vpa" in key_l:
        return mask_upi_id(value)
    if "ifsc" in key_l:
        return mask_ifsc(value)
    if "phone" in key_l or "mobile" in key_l:
        return mask_phone(value)
    if "email" in key_l:
        return mask_email(value)
    # names, bank names, wallet addresses' labels stay readable
    return value


def mask_payment_details(details: dict[str, Any] | None) -> dict[str, Any]:
    """Copy of `details` safe to show in logs, notifications and non-owner views."""
    return {k: mask_field(k, v) for k, v in (details or {}).items()}


def redact_text(value: str) -> str:
    masked = _EMAIL_RE.sub(lambda m: mask_email(m.group(0)), value)

    for marker in ("access_token", "refresh_token", "bearer"):
        if marker in masked.lower():
            return "[REDACTED]"

    return masked


def redact_value(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, str):
        return redact_text(value)
    if isinstance(value, dict):
        return redact_dict(value)
    if isinstance(value, list):
        return [redact_value(v) for v in value]
    return value


def redact_dict(payload: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for k, v in payload.items():
        if _is_sensitive_key(k):
            out[k] = "[REDACTED]"
        elif k == "payment_details" and isinstance(v, dict):
            out[k] = mask_payment_details(v)
        else:
            out[k] = redact_value(v)
    return out
