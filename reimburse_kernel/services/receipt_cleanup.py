"""Best-effort removal of receipt blobs after their records are gone."""

from __future__ import annotations

from collections.abc import Iterable

from reimburse_kernel.domain.storage import DeletionResult, ObjectStore
from reimburse_kernel.exceptions import DependencyFailureError
from reimburse_kernel.logging_config import get_logger

logger = get_logger("services.receipts")


def remove_blobs(store: ObjectStore | None, keys: Iterable[str]) -> DeletionResult:
    """Delete each key; storage failures are logged and reported as orphaned."""
    keys = tuple(keys)
    if store is None:
        if keys:
            logger.warning("receipt_store_unavailable", extra={"orphaned_keys": list(keys)})
        return DeletionResult(orphaned_keys=keys)

    removed: list[str] = []
    orphaned: list[str] = []
    for key in keys:
        try:
            store.delete(key)
        except DependencyFailureError:
            logger.warning("receipt_delete_failed", extra={"key": key}, exc_info=True)
            orphaned.append(key)
        else:
            removed.append(key)
    return DeletionResult(removed_keys=tuple(removed), orphaned_keys=tuple(orphaned))
