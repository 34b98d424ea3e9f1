"""Monthly push quota tracking."""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from pushrelay.config import Settings, get_settings
from pushrelay.exceptions import QuotaExceededError
from pushrelay.models import Account
from pushrelay.models.mixins import utcnow
from pushrelay.services.accounts import get_or_create_account, next_month_start

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuotaStatus:
    plan: str
    used: int
    limit: int


class QuotaTracker:
    """Admits or rejects pushes against the owner's monthly ceiling.

    The increment is a conditional UPDATE, so two concurrent pushes near
    the ceiling cannot both be admitted. It is flushed but not committed;
    the caller commits it with the message insert.
    """

    def __init__(self, db: Session, settings: Settings | None = None):
        self.db = db
        self.settings = settings or get_settings()

    def reset_if_due(self, account_id: str, now: datetime | None = None) -> bool:
        """Start a new period if the reset time has passed. Commits immediately."""
        now = now or utcnow()
        result = self.db.execute(
            update(Account)
            .where(
                Account.user_id == account_id,
                or_(Account.pushes_reset_at.is_(None), Account.pushes_reset_at <= now),
            )
            .values(pushes_used=0, pushes_reset_at=next_month_start(now))
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        if result.rowcount:
            logger.info(f"Reset monthly push counter for {account_id}")
        return bool(result.rowcount)

    def check_and_increment(self, account_id: str, now: datetime | None = None) -> QuotaStatus:
        account = get_or_create_account(self.db, account_id)
        self.reset_if_due(account_id, now)

        plan = account.plan
        limit = self.settings.limits_for(plan).pushes

        result = self.db.execute(
            update(Account)
            .where(Account.user_id == account_id, Account.pushes_used < limit)
            .values(pushes_used=Account.pushes_used + 1)
            .execution_options(synchronize_session=False)
        )
        self.db.refresh(account)

        if result.rowcount == 0:
            logger.warning(
                f"Push quota exceeded for {account_id}: {account.pushes_used}/{limit} on {plan}"
            )
            raise QuotaExceededError(plan=plan, used=account.pushes_used, limit=limit)

        return QuotaStatus(plan=plan, used=account.pushes_used, limit=limit)
