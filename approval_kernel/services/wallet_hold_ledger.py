"""
WalletHoldLedger -- escrow for pending financial changes.

Responsibility:
    Computes the wallet exposure of a price change, reserves a hold for
    material changes while the request is pending, settles the hold into
    an immutable ``WalletAdjustment`` on approval and releases it on
    rejection.

Architecture position:
    Kernel > Services.  Called only by ``ApprovalRequestStore`` while it
    holds the request's lock, so hold transitions and request decisions
    for one id never interleave.

Invariants enforced:
    - At most one active hold per request id.
    - Hold lifecycle is holding -> settled | released; resolved holds
      move to the closed history and never come back.
    - Adjustments are append-only; one per settled request.  The only
      exception is ``reopen``, which undoes a resolution whose decision
      was never stored.
    - hold_amount is zero when no hold is required.
    - Settle and release on an id without an active hold are no-ops
      (returning None), so a request that never needed a hold can be
      decided through the same path.

Failure modes:
    - HoldConflictError if ``create_hold`` or ``reopen`` is called for an
      id that already holds funds.

Audit relevance:
    Every transition logs ``wallet_hold_created``,
    ``wallet_hold_settled`` or ``wallet_hold_released`` with the amount.
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Callable

from approval_kernel.domain.approval import (
    AdjustmentType,
    HoldStatus,
    WalletAdjustment,
    WalletHold,
    WalletImpact,
)
from approval_kernel.domain.changes import (
    AffectedEntity,
    ChangeType,
    FINANCIAL_CHANGE_TYPES,
    PriceChangeTarget,
)
from approval_kernel.domain.clock import Clock, SystemClock
from approval_kernel.domain.policy import WalletHoldPolicy
from approval_kernel.domain.values import ZERO
from approval_kernel.exceptions import HoldConflictError
from approval_kernel.logging_config import get_logger

logger = get_logger("services.wallet_hold_ledger")


def new_transaction_id() -> str:
    return f"APP_{uuid.uuid4().hex[:12].upper()}"


@dataclass(frozen=True)
class WalletHoldSummary:
    active_hold_count: int
    total_held: Decimal
    holds: tuple[WalletHold, ...]
    recent_adjustments: tuple[WalletAdjustment, ...]


class WalletHoldLedger:
    """
    In-process hold and adjustment ledger.

    Contract:
        ``compute_impact`` is pure.  ``create_hold``, ``settle`` and
        ``release`` mutate state under an internal lock; callers keep the
        per-request ordering.
    """

    def __init__(
        self,
        clock: Clock | None = None,
        policy: WalletHoldPolicy | None = None,
        transaction_ids: Callable[[], str] = new_transaction_id,
    ):
        self._clock = clock or SystemClock()
        self._policy = policy or WalletHoldPolicy()
        self._transaction_ids = transaction_ids
        self._lock = threading.Lock()
        self._active: dict[int, WalletHold] = {}
        self._closed: list[WalletHold] = []
        self._adjustments: list[WalletAdjustment] = []

    @property
    def policy(self) -> WalletHoldPolicy:
        return self._policy

    # ------------------------------------------------------------------
    # Exposure
    # ------------------------------------------------------------------

    def compute_impact(
        self,
        change_type: ChangeType,
        entity: AffectedEntity,
    ) -> WalletImpact | None:
        """Wallet exposure of a change; None for non-financial types."""
        if change_type not in FINANCIAL_CHANGE_TYPES:
            return None
        if not isinstance(entity, PriceChangeTarget):
            return None

        price_change = entity.proposed.price - entity.current.price
        total_impact = abs(price_change) * Decimal(entity.current.stock)
        if price_change > ZERO:
            adjustment_type = AdjustmentType.INCREASE
        elif price_change < ZERO:
            adjustment_type = AdjustmentType.DECREASE
        else:
            adjustment_type = AdjustmentType.NONE

        requires_hold = total_impact > self._policy.materiality_threshold
        return WalletImpact(
            requires_hold=requires_hold,
            hold_amount=total_impact * self._policy.hold_ratio if requires_hold else ZERO,
            adjustment_type=adjustment_type,
            total_impact=total_impact,
            price_change=price_change,
        )

    # ------------------------------------------------------------------
    # Hold lifecycle
    # ------------------------------------------------------------------

    def create_hold(self, request_id: int, wallet_impact: WalletImpact) -> WalletHold:
        hold = WalletHold(
            request_id=request_id,
            hold_amount=wallet_impact.hold_amount,
            adjustment_type=wallet_impact.adjustment_type,
            total_impact=wallet_impact.total_impact,
            created_at=self._clock.now(),
        )
        with self._lock:
            if request_id in self._active:
                raise HoldConflictError(request_id)
            self._active[request_id] = hold

        logger.info(
            "wallet_hold_created",
            extra={
                "request_id": request_id,
                "hold_amount": hold.hold_amount,
                "total_impact": hold.total_impact,
                "adjustment_type": hold.adjustment_type.value,
            },
        )
        return hold

    def settle(
        self,
        request_id: int,
        wallet_impact: WalletImpact,
    ) -> WalletAdjustment | None:
        """Convert the active hold into a completed adjustment."""
        now = self._clock.now()
        with self._lock:
            hold = self._active.pop(request_id, None)
            if hold is None:
                return None
            if wallet_impact.adjustment_type is AdjustmentType.INCREASE:
                amount = wallet_impact.total_impact
            else:
                amount = -wallet_impact.total_impact
            adjustment = WalletAdjustment(
                request_id=request_id,
                transaction_id=self._transaction_ids(),
                hold_amount=hold.hold_amount,
                adjustment_amount=amount,
                adjustment_type=wallet_impact.adjustment_type,
                processed_at=now,
            )
            self._closed.append(
                replace(hold, status=HoldStatus.SETTLED, resolved_at=now)
            )
            self._adjustments.append(adjustment)

        logger.info(
            "wallet_hold_settled",
            extra={
                "request_id": request_id,
                "transaction_id": adjustment.transaction_id,
                "adjustment_amount": adjustment.adjustment_amount,
            },
        )
        return adjustment

    def release(self, request_id: int) -> WalletHold | None:
        """Drop the active hold without a wallet movement."""
        now = self._clock.now()
        with self._lock:
            hold = self._active.pop(request_id, None)
            if hold is None:
                return None
            released = replace(hold, status=HoldStatus.RELEASED, resolved_at=now)
            self._closed.append(released)

        logger.info(
            "wallet_hold_released",
            extra={"request_id": request_id, "hold_amount": hold.hold_amount},
        )
        return released

    def reopen(self, request_id: int) -> WalletHold | None:
        """Undo the latest settle or release for ``request_id``.

        The closed hold becomes active again and any adjustment it
        produced is dropped.  Used when the decision that resolved the
        hold could not be stored.
        """
        with self._lock:
            if request_id in self._active:
                raise HoldConflictError(request_id)
            index = next(
                (i for i in range(len(self._closed) - 1, -1, -1)
                 if self._closed[i].request_id == request_id),
                None,
            )
            if index is None:
                return None
            closed = self._closed.pop(index)
            if closed.status is HoldStatus.SETTLED:
                self._adjustments = [
                    a for a in self._adjustments if a.request_id != request_id
                ]
            hold = replace(closed, status=HoldStatus.HOLDING, resolved_at=None)
            self._active[request_id] = hold

        logger.warning(
            "wallet_hold_reopened",
            extra={
                "request_id": request_id,
                "hold_amount": hold.hold_amount,
                "previous_status": closed.status.value,
            },
        )
        return hold

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_active_hold(self, request_id: int) -> WalletHold | None:
        with self._lock:
            return self._active.get(request_id)

    def adjustments_for(self, request_id: int) -> tuple[WalletAdjustment, ...]:
        with self._lock:
            return tuple(a for a in self._adjustments if a.request_id == request_id)

    def closed_holds(self) -> tuple[WalletHold, ...]:
        with self._lock:
            return tuple(self._closed)

    def summary(self, limit: int | None = None) -> WalletHoldSummary:
        """Active holds, their total, and the most recent adjustments first."""
        limit = self._policy.recent_adjustment_limit if limit is None else limit
        with self._lock:
            holds = tuple(self._active[k] for k in sorted(self._active))
            recent = tuple(reversed(self._adjustments[-limit:])) if limit > 0 else ()
        return WalletHoldSummary(
            active_hold_count=len(holds),
            total_held=sum((h.hold_amount for h in holds), ZERO),
            holds=holds,
            recent_adjustments=recent,
        )
