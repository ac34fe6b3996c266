"""
ApprovalRepository -- storage contract for approval request snapshots.

Responsibility:
    Defines what the request store needs from a backend (collision-free
    id allocation, insert, load, replace, snapshot listing) and provides
    the in-memory reference implementation.

Architecture position:
    Kernel > Services.  ``ApprovalRequestStore`` is the only writer; the
    selector reads through ``list_all`` / ``get``.

Invariants enforced:
    - ``next_id`` is strictly monotonic and never repeats, even under
      concurrent submitters.
    - Reads return frozen snapshots; callers cannot mutate stored state.
    - ``update`` never changes the set of stored ids.

Failure modes:
    - ValueError from ``add`` if the id is already stored, and from
      ``update`` if it is not.
"""

from __future__ import annotations

import threading
from typing import Protocol

from approval_kernel.domain.approval import ApprovalRequest
from approval_kernel.logging_config import get_logger

logger = get_logger("services.repository")


class ApprovalRepository(Protocol):
    """Backend contract satisfied by in-memory and SQL implementations."""

    def next_id(self) -> int:
        ...

    def add(self, request: ApprovalRequest) -> None:
        ...

    def get(self, request_id: int) -> ApprovalRequest | None:
        ...

    def update(self, request: ApprovalRequest) -> None:
        ...

    def list_all(self) -> list[ApprovalRequest]:
        ...


class InMemoryApprovalRepository:
    """
    Process-local repository guarded by a single lock.

    Contract:
        Stores frozen ``ApprovalRequest`` snapshots keyed by id.  Every
        read copies the current references under the lock, so a reader
        sees either the pre- or post-decision snapshot of a request,
        never a mix.
    """

    def __init__(self, start_id: int = 1) -> None:
        self._lock = threading.Lock()
        self._requests: dict[int, ApprovalRequest] = {}
        self._next_id = start_id

    def next_id(self) -> int:
        with self._lock:
            value = self._next_id
            self._next_id += 1
        logger.debug("request_id_allocated", extra={"value": value})
        return value

    def add(self, request: ApprovalRequest) -> None:
        with self._lock:
            if request.request_id in self._requests:
                raise ValueError(f"Request {request.request_id} already stored")
            self._requests[request.request_id] = request

    def get(self, request_id: int) -> ApprovalRequest | None:
        with self._lock:
            return self._requests.get(request_id)

    def update(self, request: ApprovalRequest) -> None:
        with self._lock:
            if request.request_id not in self._requests:
                raise ValueError(f"Request {request.request_id} is not stored")
            self._requests[request.request_id] = request

    def list_all(self) -> list[ApprovalRequest]:
        with self._lock:
            return [self._requests[k] for k in sorted(self._requests)]

    def __len__(self) -> int:
        with self._lock:
            return len(self._requests)
