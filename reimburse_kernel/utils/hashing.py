"""
Deterministic hashing utilities.

Config checksums and signed receipt references both go through here so
the same payload always hashes the same way.
"""

import hashlib
import hmac
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID


def _json_serializer(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        # trailing zeros would make equal amounts hash differently
        return str(obj.normalize())
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, (frozenset, set)):
        return sorted(obj)

    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: dict | list | Any) -> str:
    """
    Convert data to canonical JSON: sorted keys, no whitespace, and stable
    rendering of Decimal, datetime and UUID values.
    """
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=_json_serializer,
    )


def hash_payload(payload: dict) -> str:
    """Hex SHA-256 of the canonical JSON form of ``payload``."""
    canonical = canonicalize_json(payload)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def sign_message(secret: bytes, message: str) -> str:
    """Hex HMAC-SHA256 of ``message`` under ``secret``."""
    return hmac.new(secret, message.encode("utf-8"), hashlib.sha256).hexdigest()


def verify_signature(secret: bytes, message: str, signature: str) -> bool:
    return hmac.compare_digest(sign_message(secret, message), signature)
