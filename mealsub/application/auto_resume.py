"""
Auto-resume job. Runs daily and reactivates subscriptions whose planned pause is over.

For each paused subscription with pause_end_date < today:
  - close the open pause period on pause_end_date (earlier if the quota ran out)
  - status → active, pause window cleared
Subscriptions paused without a planned end stay paused until resumed by hand.

Use cases settle expired pauses on load too; the job keeps stored rows
current for subscriptions nobody touches.
"""
import logging
from datetime import date, datetime, time

from sqlalchemy.orm import Session

from mealsub.domain.subscription import SubscriptionStateMachine
from mealsub.infrastructure.gateway import SqlAlchemyGateway

logger = logging.getLogger(__name__)


def auto_resume_expired_pauses(db: Session, today: date | None = None) -> int:
    """
    Resume every subscription whose planned pause ended before today.

    Returns number of subscriptions resumed.
    """
    if today is None:
        today = date.today()
    now = datetime.combine(today, time.min)

    gateway = SqlAlchemyGateway(db)
    resumed = 0
    for sub_id in gateway.list_paused_subscription_ids():
        try:
            if _resume_one(db, gateway, sub_id, now):
                resumed += 1
        except Exception:
            db.rollback()
            logger.exception("Auto-resume failed for subscription_id=%d", sub_id)

    logger.info("Auto-resume: %d subscription(s) resumed", resumed)
    return resumed


def _resume_one(db: Session, gateway: SqlAlchemyGateway, sub_id: int, now: datetime) -> bool:
    sub = gateway.load_subscription(sub_id, for_update=True)
    if not SubscriptionStateMachine(sub).settle_expired_pause(now):
        db.rollback()
        return False

    gateway.save_subscription(sub)
    db.commit()
    return True
