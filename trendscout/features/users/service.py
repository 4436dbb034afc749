"""
User store.
- get_user(user_id)
- get_or_create_user(user_id)
- find_by_customer_id(stripe_customer_id)
- attach_customer(user_id, stripe_customer_id)
- set_tier(user_id, tier)

All writes are plain upserts so replayed billing events converge.
"""

from datetime import datetime, timezone
from typing import Callable, ContextManager, Optional
from sqlalchemy import select, insert, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from trendscout.core.database import get_db_session, users as app_users
from trendscout.models.user import Tier, User

SessionScope = Callable[[], ContextManager[Session]]


def _row_to_user(row) -> User:
    return User(
        user_id=row.user_id,
        subscription_tier=Tier.parse(row.subscription_tier),
        stripe_customer_id=row.stripe_customer_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class UserStore:
    def __init__(self, session_scope: SessionScope = get_db_session):
        self._session_scope = session_scope

    def get_user(self, user_id: str) -> Optional[User]:
        with self._session_scope() as session:
            row = session.execute(select(app_users).where(app_users.c.user_id == user_id)).first()
            return _row_to_user(row) if row else None

    def get_or_create_user(self, user_id: str) -> User:
        """Return the user, creating a free-tier record on first sight.

        Keyed by the primary key: a concurrent creator losing the insert race
        gets an IntegrityError and reads the winner's row instead.
        """
        existing = self.get_user(user_id)
        if existing:
            return existing

        now = datetime.now(timezone.utc)
        try:
            with self._session_scope() as session:
                session.execute(
                    insert(app_users).values(
                        user_id=user_id,
                        subscription_tier=Tier.FREE.value,
                        created_at=now,
                        updated_at=now,
                    )
                )
        except IntegrityError:
            created = self.get_user(user_id)
            if created:
                return created
            raise
        return User(user_id=user_id, subscription_tier=Tier.FREE, created_at=now, updated_at=now)

    def find_by_customer_id(self, stripe_customer_id: str) -> Optional[User]:
        with self._session_scope() as session:
            row = session.execute(
                select(app_users).where(app_users.c.stripe_customer_id == stripe_customer_id).limit(1)
            ).first()
            return _row_to_user(row) if row else None

    def attach_customer(self, user_id: str, stripe_customer_id: str) -> None:
        self.get_or_create_user(user_id)
        with self._session_scope() as session:
            session.execute(
                update(app_users)
                .where(app_users.c.user_id == user_id)
                .values(stripe_customer_id=stripe_customer_id, updated_at=datetime.now(timezone.utc))
            )

    def set_tier(self, user_id: str, tier: Tier) -> None:
        self.get_or_create_user(user_id)
        with self._session_scope() as session:
            session.execute(
                update(app_users)
                .where(app_users.c.user_id == user_id)
                .values(subscription_tier=Tier(tier).value, updated_at=datetime.now(timezone.utc))
            )
