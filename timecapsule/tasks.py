import logging
from typing import List

from celery import shared_task

logger = logging.getLogger(__name__)


def find_orphaned_blobs(store, object_store) -> List[str]:
    """Blob keys in the object store that no content row points at."""
    referenced = store.storage_keys()
    return sorted(key for key in object_store.keys() if key not in referenced)


@shared_task(name='timecapsule.tasks.audit_orphaned_blobs')
def audit_orphaned_blobs():
    from timecapsule.config import load_settings
    from timecapsule.services import build_services

    services = build_services(load_settings())
    logger.info("Starting audit of stored blobs")
    try:
        orphans = find_orphaned_blobs(services.store, services.object_store)
    except Exception as e:
        logger.error(f"Error in audit_orphaned_blobs: {str(e)}")
        raise
    for key in orphans:
        logger.warning(f"Orphaned blob {key} is not referenced by any content")
    logger.info(f"Audit finished: {len(orphans)} orphaned blobs")
    return orphans
