"""
reimburse_kernel.services.identity -- Actor resolution from a verified session.

Responsibility:
    Turn an identity provider's verdict on a session token into the
    ``ActorContext`` every engine and service call takes.  The role comes
    from the stored profile, never from the request.

Architecture position:
    Kernel > Services.  The identity provider itself is an external
    collaborator behind the ``IdentityProvider`` protocol.

Failure modes:
    - NotAuthorizedError: the session is invalid or the subject has no profile.
    - DependencyFailureError: the identity provider itself failed.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol
from uuid import UUID

from sqlalchemy.orm import Session

from reimburse_kernel.domain.lifecycle import ActorContext, Role
from reimburse_kernel.exceptions import DependencyFailureError, NotAuthorizedError
from reimburse_kernel.logging_config import LogContext, get_logger
from reimburse_kernel.models.directory import ProfileModel

logger = get_logger("services.identity")


class IdentityProvider(Protocol):
    def verify(self, token: str) -> UUID | None:
        """Return the subject id of a valid session, or None."""
        ...


class StaticIdentityProvider:
    """Token -> subject table.  For local runs and tests."""

    def __init__(self, sessions: Mapping[str, UUID] | None = None) -> None:
        self._sessions = dict(sessions or {})

    def issue(self, token: str, subject: UUID) -> None:
        self._sessions[token] = subject

    def revoke(self, token: str) -> None:
        self._sessions.pop(token, None)

    def verify(self, token: str) -> UUID | None:
        return self._sessions.get(token)


def resolve_actor(session: Session, provider: IdentityProvider, token: str) -> ActorContext:
    """Build the ``ActorContext`` for a session token and bind it to the log context."""
    try:
        subject = provider.verify(token)
    except Exception as exc:
        raise DependencyFailureError("identity", "verify", str(exc)) from exc

    if subject is None:
        logger.warning("session_rejected")
        raise NotAuthorizedError("anonymous", "authenticate", "session is not valid")

    profile = session.get(ProfileModel, subject)
    if profile is None:
        logger.warning("profile_missing", extra={"subject": str(subject)})
        raise NotAuthorizedError(str(subject), "authenticate", "no profile exists for this user")

    LogContext.set(actor_id=str(subject))
    return ActorContext(actor_id=subject, role=Role(profile.role))
