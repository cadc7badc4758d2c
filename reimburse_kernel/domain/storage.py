"""
Receipt storage contract (``reimburse_kernel.domain.storage``).

The kernel talks to object storage only through ``ObjectStore``.  Concrete
backends live in ``reimburse_services.receipt_storage``.  Backends raise
``DependencyFailureError`` for every storage failure and ``KeyError`` is
never leaked to callers.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime
from pathlib import PurePosixPath
from typing import Protocol, runtime_checkable
from uuid import UUID

_MAX_EXTENSION_LENGTH = 10


@dataclass(frozen=True)
class ReceiptUpload:
    """A receipt image supplied with an item create or update."""

    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


@dataclass(frozen=True)
class SignedReference:
    """Time-limited access reference for displaying one receipt."""

    key: str
    url: str
    expires_at: datetime


@dataclass(frozen=True)
class DeletionResult:
    """Outcome of a delete that also removes receipt blobs.

    The record delete is committed before blobs are removed, so a storage
    failure leaves ``orphaned_keys`` behind rather than a half-deleted record.
    """

    removed_keys: tuple[str, ...] = ()
    orphaned_keys: tuple[str, ...] = ()


@runtime_checkable
class ObjectStore(Protocol):
    def put(self, key: str, content: bytes, content_type: str) -> None: ...

    def get(self, key: str) -> bytes: ...

    def delete(self, key: str) -> None: ...

    def signed_reference(self, key: str, ttl_seconds: int) -> SignedReference: ...


def new_receipt_key(owner_id: UUID, filename: str) -> str:
    """Build ``<owner>/<random hex>.<ext>``; the extension defaults to ``bin``."""
    suffix = PurePosixPath(filename or "").suffix.lstrip(".").lower()
    if not suffix or not suffix.isalnum() or len(suffix) > _MAX_EXTENSION_LENGTH:
        suffix = "bin"
    return f"{owner_id}/{secrets.token_hex(16)}.{suffix}"
