"""Celery tasks for redelivering failed notifications."""

import asyncio
import logging

from sqlalchemy.orm import Session

from pushrelay.celery_app import app as celery_app
from pushrelay.database import SessionLocal
from pushrelay.services.dispatcher import FanOutDispatcher

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, max_retries=2)
def retry_failed_deliveries(self, batch_size: int | None = None) -> dict:
    """Retry failed deliveries whose backoff has elapsed.

    This task runs every minute via celery-beat.

    Returns:
        dict with processing statistics
    """
    db: Session = SessionLocal()

    try:
        dispatcher = FanOutDispatcher(db)
        retried = asyncio.run(dispatcher.retry_due(batch_size=batch_size))
        if retried:
            logger.info(f"Retry sweep redelivered {retried} notifications")
        return {"retried": retried}

    except Exception as e:
        logger.error(f"Retry sweep failed: {e}")
        raise self.retry(exc=e, countdown=30) from e

    finally:
        db.close()
