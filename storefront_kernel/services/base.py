"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every write-side service.  Services receive a SQLAlchemy ``Session``
    and persist through ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    Transaction boundaries: services flush within the caller's
    transaction and never commit or rollback themselves.  The caller
    (``Database.transaction()``, the gateway, or a test) owns
    commit/rollback, so a checkout that locks the cart, writes the order
    and clears the cart is one atomic unit.
"""

from abc import ABC
from uuid import UUID

from sqlalchemy.orm import Session


def as_uuid(value) -> UUID | None:
    """Parse an identifier given as UUID or string; None if malformed."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        return None


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.

    Non-goals:
        - Does NOT provide read-only query methods -- those belong in
          ``storefront_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
