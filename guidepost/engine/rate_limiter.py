"""Guidepost - Daily Transform Quota.

The check and the increment are one conditional UPDATE
(``count = count + 1 WHERE count < limit``), so two concurrent requests
can never both take the last unit. The first use of a day inserts the row
and relies on the primary key to lose a racing insert. Any store failure
rejects the request: the quota fails closed.
"""

from datetime import date, datetime, timezone
from typing import Callable, Optional

from sqlalchemy import delete, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from guidepost.core.errors import InternalError
from guidepost.core.logging import get_logger
from guidepost.models.usage_models import UsageCheck, UsageRecord

logger = get_logger("rate_limiter")

MAX_INSERT_RACES = 3


def utc_day(moment: Optional[datetime] = None) -> str:
    """UTC calendar day key (YYYY-MM-DD); rolls over at UTC midnight."""
    return (moment or datetime.now(timezone.utc)).astimezone(timezone.utc).strftime("%Y-%m-%d")


class UsageTracker:
    """Per-user-per-day transform counter with a privileged bypass."""

    def __init__(
        self,
        engine: Engine,
        daily_limit: int,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.engine = engine
        self.daily_limit = daily_limit
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _unlimited(self) -> UsageCheck:
        return UsageCheck(
            allowed=True, usage_today=0, usage_limit=self.daily_limit, is_unlimited=True
        )

    def current_usage(self, user_email: str, privileged: bool = False) -> UsageCheck:
        """Read today's usage without consuming anything."""
        if privileged:
            return self._unlimited()

        key = (user_email.strip().lower(), utc_day(self._clock()))
        try:
            with Session(self.engine) as session:
                record = session.get(UsageRecord, key)
                count = record.count if record else 0
        except SQLAlchemyError as e:
            logger.error(f"Usage read failed: {e}", extra={"user": key[0]})
            raise InternalError() from e

        return UsageCheck(
            allowed=count < self.daily_limit,
            usage_today=count,
            usage_limit=self.daily_limit,
        )

    def check_and_increment(self, user_email: str, privileged: bool = False) -> UsageCheck:
        """Atomically consume one unit of today's quota if any is left.

        Privileged users never touch a counter. Raises ``InternalError`` if
        the store cannot be reached; never returns allowed on failure.
        """
        if privileged:
            return self._unlimited()

        email = user_email.strip().lower()
        day = utc_day(self._clock())

        try:
            for _ in range(MAX_INSERT_RACES):
                check = self._try_increment(email, day)
                if check is not None:
                    return check
        except SQLAlchemyError as e:
            logger.error(f"Usage increment failed, rejecting: {e}", extra={"user": email})
            raise InternalError() from e

        logger.error("Usage increment kept losing insert races", extra={"user": email})
        raise InternalError()

    def _try_increment(self, email: str, day: str) -> Optional[UsageCheck]:
        """One transactional attempt. None means a racing insert won; retry."""
        with Session(self.engine) as session:
            result = session.connection().execute(
                update(UsageRecord)
                .where(
                    UsageRecord.user_email == email,
                    UsageRecord.day == day,
                    UsageRecord.count < self.daily_limit,
                )
                .values(
                    count=UsageRecord.count + 1,
                    updated_at=datetime.now(timezone.utc),
                )
            )
            if result.rowcount == 1:
                count = session.exec(
                    select(UsageRecord.count).where(
                        UsageRecord.user_email == email, UsageRecord.day == day
                    )
                ).one()
                session.commit()
                return UsageCheck(allowed=True, usage_today=count, usage_limit=self.daily_limit)

            existing = session.get(UsageRecord, (email, day))
            if existing is not None:
                # At (or above) the limit: reject without incrementing
                session.rollback()
                return UsageCheck(
                    allowed=False, usage_today=existing.count, usage_limit=self.daily_limit
                )

            if self.daily_limit <= 0:
                session.rollback()
                return UsageCheck(allowed=False, usage_today=0, usage_limit=self.daily_limit)

            session.add(UsageRecord(user_email=email, day=day, count=1))
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                return None
            return UsageCheck(allowed=True, usage_today=1, usage_limit=self.daily_limit)

    def prune_before(self, cutoff: date) -> int:
        """Delete counters for days before ``cutoff``; they are never read again."""
        cutoff_key = cutoff.strftime("%Y-%m-%d")
        with Session(self.engine) as session:
            result = session.connection().execute(
                delete(UsageRecord).where(UsageRecord.day < cutoff_key)
            )
            session.commit()
            return result.rowcount or 0
