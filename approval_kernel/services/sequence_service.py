"""
SequenceService -- monotonic id allocation via a locked counter row.

Responsibility:
    Provides strictly increasing request ids for the durable repository.
    A dedicated counter table is locked with ``SELECT ... FOR UPDATE`` so
    concurrent submitters on separate connections never receive the same
    id.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.  Called by
    ``SqlAlchemyApprovalRepository.next_id``.

Invariants enforced:
    - Sequences are strictly monotonic.  Aggregate max-plus-one over the
      request table is never used; the counter row is the sole source of
      truth for the next value.
    - The increment is only visible once the caller's transaction commits.

Failure modes:
    - IntegrityError when two transactions create the same counter row
      at once; the caller retries in a fresh transaction.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from approval_kernel.logging_config import get_logger
from approval_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    """
    Transactional sequence numbers.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    APPROVAL_REQUEST = "approval_request"

    def __init__(self, session: Session):
        self._session = session

    def next_value(self, sequence_name: str) -> int:
        """Lock (or create) the counter row, increment it, return the new value."""
        counter = self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        if counter is None:
            counter = SequenceCounter(name=sequence_name, current_value=1)
            self._session.add(counter)
            self._session.flush()
            logger.debug(
                "sequence_allocated",
                extra={"sequence_name": sequence_name, "value": 1},
            )
            return 1

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value without incrementing; None if never allocated."""
        return self._session.execute(
            select(SequenceCounter.current_value)
            .where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
