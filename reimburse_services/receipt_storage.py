"""
reimburse_services.receipt_storage -- Object storage backends for receipts.

Responsibility:
    Concrete ``ObjectStore`` implementations the kernel's expense service
    writes receipt images through, plus verification of the signed,
    time-limited references they hand out for display.

Architecture position:
    Services -- I/O layer.  Implements the protocol declared in
    ``reimburse_kernel.domain.storage``; the kernel never imports this module.

Invariants enforced:
    - Every storage failure surfaces as ``DependencyFailureError``;
      ``KeyError`` and ``OSError`` never leak to the kernel.
    - Keys are relative POSIX paths.  Absolute keys and ``..`` segments are
      refused so a key can never escape the storage root.
    - A signed reference is an HMAC-SHA256 over ``key`` and expiry; it is
      valid until ``expires_at`` and only for the key it was issued for.
"""

from __future__ import annotations

import os
import secrets
import threading
from datetime import timedelta
from pathlib import Path, PurePosixPath
from urllib.parse import quote, urlencode

from reimburse_kernel.domain.clock import Clock, SystemClock
from reimburse_kernel.domain.storage import ObjectStore, SignedReference, new_receipt_key
from reimburse_kernel.exceptions import DependencyFailureError
from reimburse_kernel.logging_config import get_logger
from reimburse_kernel.utils.hashing import sign_message, verify_signature

logger = get_logger("services.receipt_storage")

_DEPENDENCY = "object_storage"


def _check_key(key: str, operation: str) -> PurePosixPath:
    path = PurePosixPath(key or "")
    if not key or path.is_absolute() or ".." in path.parts:
        raise DependencyFailureError(_DEPENDENCY, operation, f"invalid storage key {key!r}")
    return path


class _SignedReferences:
    """HMAC signing shared by both backends."""

    def __init__(self, secret: bytes | None, base_url: str, clock: Clock | None) -> None:
        self._secret = secret or secrets.token_bytes(32)
        self._base_url = base_url.rstrip("/")
        self._clock = clock or SystemClock()

    @staticmethod
    def _message(key: str, expires: int) -> str:
        return f"{key}\n{expires}"

    def signed_reference(self, key: str, ttl_seconds: int) -> SignedReference:
        _check_key(key, "sign")
        if ttl_seconds <= 0:
            raise DependencyFailureError(_DEPENDENCY, "sign", "ttl must be positive")
        expires_at = self._clock.now() + timedelta(seconds=ttl_seconds)
        expires = int(expires_at.timestamp())
        query = urlencode({
            "expires": expires,
            "signature": sign_message(self._secret, self._message(key, expires)),
        })
        return SignedReference(
            key=key,
            url=f"{self._base_url}/{quote(key)}?{query}",
            expires_at=expires_at,
        )

    def verify_reference(self, key: str, expires: int, signature: str) -> bool:
        """True when ``signature`` was issued for ``key`` and has not expired."""
        if int(self._clock.now().timestamp()) > int(expires):
            return False
        return verify_signature(self._secret, self._message(key, int(expires)), signature)


class InMemoryObjectStore(_SignedReferences):
    """Dict-backed store for tests and local runs."""

    def __init__(
        self,
        secret: bytes | None = None,
        base_url: str = "memory://receipts",
        clock: Clock | None = None,
    ) -> None:
        super().__init__(secret, base_url, clock)
        self._objects: dict[str, tuple[bytes, str]] = {}
        self._lock = threading.Lock()

    def put(self, key: str, content: bytes, content_type: str) -> None:
        _check_key(key, "put")
        with self._lock:
            self._objects[key] = (bytes(content), content_type)

    def get(self, key: str) -> bytes:
        _check_key(key, "get")
        with self._lock:
            stored = self._objects.get(key)
        if stored is None:
            raise DependencyFailureError(_DEPENDENCY, "get", f"no object stored at {key!r}")
        return stored[0]

    def content_type(self, key: str) -> str:
        with self._lock:
            stored = self._objects.get(key)
        if stored is None:
            raise DependencyFailureError(_DEPENDENCY, "get", f"no object stored at {key!r}")
        return stored[1]

    def delete(self, key: str) -> None:
        """Deleting a missing key is a no-op."""
        _check_key(key, "delete")
        with self._lock:
            self._objects.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._objects)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._objects


class LocalObjectStore(_SignedReferences):
    """
    Filesystem-backed store rooted at ``root``.

    Each key maps to a file under ``root``; writes go through a temporary
    file and ``os.replace`` so a reader never sees a half-written receipt.
    """

    def __init__(
        self,
        root: Path | str,
        secret: bytes | None = None,
        base_url: str = "/receipts",
        clock: Clock | None = None,
    ) -> None:
        super().__init__(secret, base_url, clock)
        self._root = Path(root)

    def _path(self, key: str, operation: str) -> Path:
        return self._root.joinpath(*_check_key(key, operation).parts)

    def put(self, key: str, content: bytes, content_type: str) -> None:
        target = self._path(key, "put")
        tmp = target.with_name(f".{target.name}.{secrets.token_hex(4)}.tmp")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_bytes(content)
            os.replace(tmp, target)
        except OSError as exc:
            if tmp.exists():
                tmp.unlink()
            logger.error("receipt_put_failed", extra={"key": key}, exc_info=True)
            raise DependencyFailureError(_DEPENDENCY, "put", str(exc)) from exc
        logger.debug(
            "receipt_stored",
            extra={"key": key, "size": len(content), "content_type": content_type},
        )

    def get(self, key: str) -> bytes:
        try:
            return self._path(key, "get").read_bytes()
        except OSError as exc:
            raise DependencyFailureError(_DEPENDENCY, "get", str(exc)) from exc

    def delete(self, key: str) -> None:
        """Deleting a missing key is a no-op."""
        try:
            self._path(key, "delete").unlink(missing_ok=True)
        except OSError as exc:
            raise DependencyFailureError(_DEPENDENCY, "delete", str(exc)) from exc


__all__ = [
    "InMemoryObjectStore",
    "LocalObjectStore",
    "ObjectStore",
    "SignedReference",
    "new_receipt_key",
]
