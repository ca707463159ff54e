import logging

from celery import shared_task

from cartqueue.application.cart.compaction import purge_deleted_items
from cartqueue.config import load_settings
from cartqueue.domain.cart.ports import CartStore
from cartqueue.infrastructure.database import Database
from cartqueue.infrastructure.errors import StoreError
from cartqueue.infrastructure.repositories.cart_repository import SqlCartRepository

logger = logging.getLogger(__name__)


def open_store(database_url: str) -> tuple[CartStore, Database]:
    database = Database(database_url)
    return SqlCartRepository(database.session_factory), database


@shared_task(
    name="purge_deleted_cart_items",
    max_retries=3,
    autoretry_for=(StoreError,),
    retry_backoff=True,
    retry_jitter=True,
)
def purge_deleted_cart_items(retention_hours: int | None = None) -> int:
    """
    Periodic task (Celery Beat): physically remove soft-deleted cart rows.

    Args:
        retention_hours: how long a deleted row is kept; defaults to
            DELETED_ITEM_RETENTION_HOURS
    """
    settings = load_settings()
    if retention_hours is None:
        retention_hours = settings.deleted_item_retention_hours

    store, database = open_store(settings.database_url)
    try:
        return purge_deleted_items(store, retention_hours)
    except StoreError as e:
        logger.error(f"Failed to purge deleted cart items error={e}")
        raise  # Let Celery handle retries
    finally:
        database.close()
