"""
Module: approval_kernel.selectors.base
Responsibility: Base class for read-only query selectors.  Selectors form
    the query side of the kernel, returning frozen snapshots and derived
    views without mutation capability.
Architecture position: Kernel > Selectors.  May import from domain/ and the
    repository contract.  Selectors NEVER write through the repository.

Invariants enforced:
    - Read-only access: selectors call only ``get`` and ``list_all``.
    - DTO return convention: results are frozen dataclasses or tuples of
      them, never backend rows.
"""

from abc import ABC

from approval_kernel.domain.clock import Clock, SystemClock
from approval_kernel.services.repository import ApprovalRepository


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Holds the repository to read from and the clock used for
        "now"-relative views (pending durations, statistics windows).
    """

    def __init__(self, repository: ApprovalRepository, clock: Clock | None = None):
        self.repository = repository
        self.clock = clock or SystemClock()
