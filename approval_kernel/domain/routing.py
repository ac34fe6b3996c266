"""
ApprovalRouter (``approval_kernel.domain.routing``).

Maps a sensitivity level to the ordered approver roles recorded on a
request.  The list is advisory metadata: the store lets any single
authorized actor resolve a request, it does not collect sequential
sign-offs from every role.
"""

from __future__ import annotations

from typing import Mapping

from approval_kernel.domain.approval import SensitivityLevel
from approval_kernel.domain.policy import GovernancePolicy


def required_approvers(
    level: SensitivityLevel,
    routing: Mapping[SensitivityLevel, tuple[str, ...]] | None = None,
) -> tuple[str, ...]:
    """Ordered approver roles for ``level``; unknown levels route to a manager."""
    table = routing if routing is not None else GovernancePolicy.default().routing
    return tuple(table.get(level, ("manager",)))
