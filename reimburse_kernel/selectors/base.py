"""
Module: reimburse_kernel.selectors.base
Responsibility: Abstract base class for read-only query selectors.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    the pure engines.  Selectors NEVER create, modify, or delete data.

Invariants enforced:
    - Selectors accept a Session from the caller and never add, delete,
      flush or commit.
    - Selectors return frozen DTOs, not ORM instances.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """Holds the caller's session for subclass queries."""

    def __init__(self, session: Session):
        self.session = session
