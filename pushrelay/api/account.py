"""Account endpoints for the authenticated owner."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from pushrelay.api.dependencies import get_current_owner_id
from pushrelay.config import get_settings
from pushrelay.database import get_db
from pushrelay.models import Topic
from pushrelay.schemas.account import AccountResponse, PlanLimitsResponse
from pushrelay.services.accounts import delete_account, get_or_create_account

router = APIRouter(prefix="/api/v1/account", tags=["account"])


@router.get("", response_model=AccountResponse)
async def get_account_summary(
    owner_id: Annotated[str, Depends(get_current_owner_id)],
    db: Annotated[Session, Depends(get_db)],
):
    """Get plan, limits and this period's push usage."""
    account = get_or_create_account(db, owner_id)
    limits = get_settings().limits_for(account.plan)
    topic_count = db.query(func.count(Topic.id)).filter(Topic.owner_id == owner_id).scalar()

    return AccountResponse(
        user_id=account.user_id,
        plan=account.plan,
        pushes_used=account.pushes_used,
        pushes_reset_at=account.pushes_reset_at,
        limits=PlanLimitsResponse(**limits.model_dump()),
        topic_count=topic_count or 0,
    )


@router.delete("")
async def delete_current_account(
    owner_id: Annotated[str, Depends(get_current_owner_id)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Delete the account and everything it owns."""
    delete_account(db, owner_id)
    return {"deleted": True}
