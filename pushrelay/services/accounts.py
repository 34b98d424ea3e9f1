"""Account lifecycle: lazy creation, billing periods and deletion."""

import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pushrelay.exceptions import NotFoundError
from pushrelay.models import Account
from pushrelay.models.enums import Plan
from pushrelay.models.mixins import utcnow

logger = logging.getLogger(__name__)


def next_month_start(now: datetime) -> datetime:
    """First instant of the calendar month after ``now``."""
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        return start.replace(year=start.year + 1, month=1)
    return start.replace(month=start.month + 1)


def get_account(db: Session, user_id: str) -> Account | None:
    return db.query(Account).filter(Account.user_id == user_id).first()


def get_or_create_account(db: Session, user_id: str) -> Account:
    """Get or lazily create the account row for an auth-provider user."""
    account = get_account(db, user_id)
    if account:
        return account

    account = Account(
        user_id=user_id,
        plan=Plan.FREE.value,
        pushes_used=0,
        pushes_reset_at=next_month_start(utcnow()),
    )
    db.add(account)
    try:
        db.commit()
    except IntegrityError:
        # A concurrent first request for the same owner inserted it first
        db.rollback()
        account = get_account(db, user_id)
        if account is None:
            raise
        return account

    db.refresh(account)
    logger.info(f"Created account for {user_id}")
    return account


def delete_account(db: Session, user_id: str) -> None:
    """Delete an account with all of its topics, messages and subscribers."""
    account = get_account(db, user_id)
    if account is None:
        raise NotFoundError("Account not found")

    db.delete(account)
    db.commit()
    logger.info(f"Deleted account {user_id}")
