"""
Quota gate evaluated before every billable provider call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from createkit.errors import Forbidden
from createkit.identity import Caller, PlanTier, QuotaSource

logger = logging.getLogger(__name__)

FREE_LIMIT_MESSAGE = "Free plan usage limit reached. Please upgrade to premium."


class BillingClass(str, Enum):
    FREE_ELIGIBLE = "free-eligible"
    PREMIUM_ONLY = "premium-only"


@dataclass(frozen=True)
class UsageQuota:
    owner_id: str
    plan: PlanTier
    remaining: int


class QuotaGate:
    """
    Decides whether a caller may run an operation and accounts for free usage.

    The counter is read from the source on every ``check``; ``commit`` is
    called only after the operation succeeded.
    """

    def __init__(self, source: QuotaSource, free_limit: int = 10):
        self.source = source
        self.free_limit = free_limit

    def read(self, caller: Caller) -> UsageQuota:
        stored = self.source.get(caller.user_id)
        if caller.is_premium:
            if stored != 0:
                logger.info("Resetting free usage for premium user %s", caller.user_id)
                self.source.update(caller.user_id, 0)
            return UsageQuota(caller.user_id, caller.plan, 0)
        remaining = self.free_limit if stored is None else max(stored, 0)
        return UsageQuota(caller.user_id, caller.plan, remaining)

    def check(
        self, caller: Caller, billing: BillingClass, feature: str = "This feature"
    ) -> UsageQuota:
        quota = self.read(caller)
        if billing == BillingClass.PREMIUM_ONLY and quota.plan != PlanTier.PREMIUM:
            raise Forbidden(
                f"{feature} is available for premium users only. "
                "Please upgrade to premium."
            )
        if quota.plan != PlanTier.PREMIUM and quota.remaining <= 0:
            logger.info("Free usage exhausted for user %s", caller.user_id)
            raise Forbidden(FREE_LIMIT_MESSAGE)
        return quota

    def commit(self, quota: UsageQuota) -> None:
        if quota.plan == PlanTier.PREMIUM:
            return
        self.source.update(quota.owner_id, max(quota.remaining - 1, 0))
