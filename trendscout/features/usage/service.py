"""
trendscout/features/usage/service.py

Monthly usage metering.

Handles:
- Quota checks (free tier: FREE_TIER_MONTHLY_LIMIT searches per UTC month)
- Atomic usage increments (tracked for every tier)
- Usage statistics for the caller

Metering is best-effort: a failed increment is logged and swallowed, it never
blocks or rolls back topic delivery.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, ContextManager, Optional
from sqlalchemy import select, insert, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from trendscout.core.database import get_db_session, usage_records
from trendscout.features.entitlements.service import EntitlementResolver
from trendscout.models.usage import UsageRecord, UsageStats
from trendscout.models.user import Tier


logger = logging.getLogger(__name__)

FREE_TIER_LIMIT = 10


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def month_key(now: datetime) -> str:
    """Calendar month as YYYY-MM on the UTC clock."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)
    return f"{now.year:04d}-{now.month:02d}"


class UsageService:
    def __init__(
        self,
        entitlements: EntitlementResolver,
        session_scope: Callable[[], ContextManager[Session]] = get_db_session,
        clock: Callable[[], datetime] = utc_now,
        free_limit: int = FREE_TIER_LIMIT,
    ):
        self.entitlements = entitlements
        self._session_scope = session_scope
        self._clock = clock
        self.free_limit = free_limit

    def current_month(self) -> str:
        return month_key(self._clock())

    def get_record(self, user_id: str, month: Optional[str] = None) -> Optional[UsageRecord]:
        month = month or self.current_month()
        with self._session_scope() as session:
            row = session.execute(
                select(usage_records)
                .where(usage_records.c.user_id == user_id)
                .where(usage_records.c.month == month)
            ).first()
        if not row:
            return None
        return UsageRecord(
            user_id=row.user_id,
            month=row.month,
            search_count=row.search_count or 0,
            last_search_at=row.last_search_at,
        )

    def _ensure_record(self, user_id: str, month: str) -> None:
        try:
            with self._session_scope() as session:
                session.execute(
                    insert(usage_records).values(user_id=user_id, month=month, search_count=0)
                )
        except IntegrityError:
            # Another request created it first
            pass

    def check_limit(self, user_id: str, tier: Optional[Tier] = None) -> bool:
        """True when the user may run one more search this month."""
        if tier is None:
            tier = self.entitlements.get_tier(user_id)
        if tier == Tier.PRO:
            return True

        month = self.current_month()
        try:
            record = self.get_record(user_id, month)
            if record is None:
                self._ensure_record(user_id, month)
                return True
            allowed = record.search_count < self.free_limit
        except Exception:
            logger.error(
                "[usage] limit check failed, allowing request",
                exc_info=True,
                extra={"user_id": user_id},
            )
            return True

        if not allowed:
            logger.info(
                "[usage] monthly limit reached",
                extra={"user_id": user_id, "tier": Tier.FREE.value},
            )
        return allowed

    def _atomic_increment(self, user_id: str, month: str, now: datetime) -> None:
        with self._session_scope() as session:
            result = session.execute(
                update(usage_records)
                .where(usage_records.c.user_id == user_id)
                .where(usage_records.c.month == month)
                .values(search_count=usage_records.c.search_count + 1, last_search_at=now)
            )
            if result.rowcount == 0:
                session.execute(
                    insert(usage_records).values(
                        user_id=user_id,
                        month=month,
                        search_count=1,
                        last_search_at=now,
                    )
                )

    def increment(self, user_id: str) -> None:
        """Record one search. Never raises."""
        try:
            tier = self.entitlements.get_tier(user_id)
            now = self._clock()
            month = month_key(now)
            try:
                self._atomic_increment(user_id, month, now)
            except IntegrityError:
                # Lost the insert race; the row exists now, so the update applies
                self._atomic_increment(user_id, month, now)
            logger.info("[usage] search recorded", extra={"user_id": user_id, "tier": tier.value})
        except Exception:
            logger.error(
                "[usage] increment failed",
                exc_info=True,
                extra={"user_id": user_id},
            )

    def stats(self, user_id: str) -> UsageStats:
        try:
            tier = self.entitlements.get_tier(user_id)
            month = self.current_month()
            record = self.get_record(user_id, month)
        except Exception:
            logger.error("[usage] stats lookup failed", exc_info=True, extra={"user_id": user_id})
            return UsageStats(current=0, limit=self.free_limit, month="")

        current = record.search_count if record else 0
        limit = None if tier == Tier.PRO else self.free_limit
        return UsageStats(current=current, limit=limit, month=month)
