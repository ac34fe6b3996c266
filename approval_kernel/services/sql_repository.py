"""
SqlAlchemyApprovalRepository -- durable ``ApprovalRepository``.

Responsibility:
    Persists request snapshots and their comments through SQLAlchemy.
    Each call is its own transaction (``session_scope``), so a snapshot
    written by ``add``/``update`` is committed before the store releases
    the request lock.

Architecture position:
    Kernel > Services.  Imports models/ and db/; callers see only frozen
    ``ApprovalRequest`` DTOs.

Invariants enforced:
    - Ids come from ``SequenceService`` (locked counter row).
    - ``update`` appends new comments and never rewrites existing ones
      (comment rows are protected by ORM listeners).
    - A decided request's decision columns cannot be overwritten.

Failure modes:
    - ValueError from ``add`` if the id exists, from ``update`` if not.
    - ImmutabilityViolationError if an update would change a decided
      request's decision.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from approval_kernel.db.engine import get_session_factory, session_scope
from approval_kernel.domain.approval import ApprovalRequest
from approval_kernel.logging_config import get_logger
from approval_kernel.models.approval import ApprovalRequestModel
from approval_kernel.services.sequence_service import SequenceService

logger = get_logger("services.sql_repository")


class SqlAlchemyApprovalRepository:
    """Repository backed by the ``approval_requests`` tables."""

    def __init__(self, session_factory: sessionmaker[Session] | None = None):
        self._session_factory = session_factory or get_session_factory()

    def next_id(self) -> int:
        try:
            with session_scope(self._session_factory) as session:
                return SequenceService(session).next_value(SequenceService.APPROVAL_REQUEST)
        except IntegrityError:
            # Counter row created concurrently; it exists now.
            logger.debug("sequence_counter_race_retry")
            with session_scope(self._session_factory) as session:
                return SequenceService(session).next_value(SequenceService.APPROVAL_REQUEST)

    def add(self, request: ApprovalRequest) -> None:
        with session_scope(self._session_factory) as session:
            if session.get(ApprovalRequestModel, request.request_id) is not None:
                raise ValueError(f"Request {request.request_id} already stored")
            session.add(ApprovalRequestModel.from_dto(request))

    def get(self, request_id: int) -> ApprovalRequest | None:
        with session_scope(self._session_factory) as session:
            model = session.get(ApprovalRequestModel, request_id)
            return model.to_dto() if model is not None else None

    def update(self, request: ApprovalRequest) -> None:
        with session_scope(self._session_factory) as session:
            model = session.get(ApprovalRequestModel, request.request_id)
            if model is None:
                raise ValueError(f"Request {request.request_id} is not stored")
            changed = model.apply_dto(request)
            session.flush()
        logger.debug(
            "approval_request_row_updated",
            extra={"request_id": request.request_id, "columns": changed},
        )

    def list_all(self) -> list[ApprovalRequest]:
        with session_scope(self._session_factory) as session:
            models = session.execute(
                select(ApprovalRequestModel).order_by(ApprovalRequestModel.request_id)
            ).scalars().all()
            return [m.to_dto() for m in models]
