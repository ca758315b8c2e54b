"""
Background tasks for notifications
"""
from uuid import UUID
import logging

from inventa.core.celery import celery_app
from inventa.database.database import SessionLocal

logger = logging.getLogger(__name__)


@celery_app.task(bind=True)
def fan_out_admin_notifications(self, company_id: str, title: str, message: str,
                                category: str, created_by: str = None):
    """
    Notify every administrator of a company from the worker.
    """
    from inventa.modules.notifications.service import fan_out_to_admins

    db = SessionLocal()
    try:
        created = fan_out_to_admins(db, UUID(company_id), title, message, category, created_by)
        logger.info(f"Stored {created} admin notification(s) for company {company_id}")
        return {"status": "success", "created": created}
    except Exception as e:
        logger.error(f"Admin notification fan-out failed for company {company_id}: {e}")
        self.retry(countdown=60, max_retries=3)
    finally:
        db.close()
