# app/platform_settings.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from app.money import CENT
from settings import settings

logger = logging.getLogger("affiliatehub.platform_settings")

MIN_PAYOUT_AMOUNT_KEY = "min_payout_amount"
AUTO_PAYOUT_ENABLED_KEY = "auto_payout_enabled"
AUTO_PAYOUT_THRESHOLD_KEY = "auto_payout_threshold"


@dataclass(frozen=True)
class AutoPayoutPolicy:
    enabled: bool
    threshold: Decimal


def _decimal_setting(uow, key: str, default: Decimal) -> Decimal:
    raw = uow.get_platform_setting(key)
    if raw is None or str(raw).strip() == "":
        return Decimal(default)
    try:
        value = Decimal(str(raw).strip())
    except InvalidOperation:
        logger.warning("platform setting %s=%r is not a number; using %s", key, raw, default)
        return Decimal(default)
    if not value.is_finite() or value < 0 or value != value.quantize(CENT):
        logger.warning("platform setting %s=%r out of range; using %s", key, raw, default)
        return Decimal(default)
    return value


def resolve_min_payout_amount(uow) -> Decimal:
    return _decimal_setting(uow, MIN_PAYOUT_AMOUNT_KEY, settings.MIN_PAYOUT_AMOUNT)


def resolve_auto_payout_policy(uow) -> AutoPayoutPolicy:
    raw_enabled = uow.get_platform_setting(AUTO_PAYOUT_ENABLED_KEY)
    if raw_enabled is None:
        enabled = bool(settings.AUTO_PAYOUT_ENABLED)
    else:
        enabled = str(raw_enabled).strip().lower() == "true"
    threshold = _decimal_setting(uow, AUTO_PAYOUT_THRESHOLD_KEY, settings.AUTO_PAYOUT_THRESHOLD)
    return AutoPayoutPolicy(enabled=enabled, threshold=threshold)
