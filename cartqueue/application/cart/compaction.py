import logging
from datetime import datetime, timedelta, timezone

from cartqueue.domain.cart.ports import CartStore

logger = logging.getLogger(__name__)


def purge_deleted_items(store: CartStore, retention_hours: int, now: datetime | None = None) -> int:
    """Physically remove cart rows soft-deleted more than `retention_hours` ago"""
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(hours=retention_hours)
    purged = store.purge_deleted(older_than=cutoff)
    if purged:
        logger.info(f"Purged {purged} deleted cart items older than {cutoff.isoformat()}")
    else:
        logger.debug("No deleted cart items to purge")
    return purged
