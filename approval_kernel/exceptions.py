"""
Typed Exception Hierarchy for the Approval Kernel.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from ApprovalKernelError:

    ApprovalKernelError (base)
    |
    +-- RequestError
    |   +-- ValidationError
    |   +-- NotFoundError
    |   +-- InvalidStateError
    |
    +-- WalletError
    |   +-- HoldConflictError
    |
    +-- ExecutionFailure
    |   +-- ExecutionError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Request         | VALIDATION_ERROR            | Missing/malformed submission, blank
                |                             | rejection reason, bad comment
                | REQUEST_NOT_FOUND           | Request id doesn't exist
                | INVALID_REQUEST_STATE       | Decision on a non-pending request
----------------|-----------------------------|-----------------------------------------
Wallet          | HOLD_ALREADY_EXISTS         | Second hold for the same request id
----------------|-----------------------------|-----------------------------------------
Execution       | CHANGE_EXECUTION_FAILED     | Approved change could not be applied
                |                             | (reported, never raised to the approver)
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Modifying an append-only record
----------------|-----------------------------|-----------------------------------------
Configuration   | INVALID_CONFIGURATION       | Governance settings failed validation

===============================================================================
HANDLING PATTERNS
===============================================================================

1. CATCH SPECIFIC EXCEPTIONS:

    try:
        store.approve(request_id, actor="admin_1")
    except InvalidStateError as e:
        # Someone already decided this request -- refresh, don't retry
        notify_user(f"Request {e.request_id} is already {e.current_status}")
    except NotFoundError as e:
        log.warning(f"Unknown request {e.request_id}")

2. USE STRUCTURED DATA (not message parsing):

    except HoldConflictError as e:
        return {"error": e.code, "request_id": e.request_id}

3. SETTLE / RELEASE WITHOUT A HOLD IS NOT AN ERROR:
   Not every request carries a hold, so the wallet ledger returns None
   instead of raising.

4. EXECUTION ERRORS ARE REPORTED, NOT RAISED:
   The approval decision is durable before the change executor runs.
   Failures are wrapped in ExecutionError, logged and published as a
   change_execution_failed event.
"""


class ApprovalKernelError(Exception):
    """
    Base exception for all approval kernel errors.

    All subclasses must have a `code` class attribute for
    machine-readable error identification.
    """

    code: str = "APPROVAL_KERNEL_ERROR"


# Request-related exceptions


class RequestError(ApprovalKernelError):
    """Base exception for approval request errors."""

    code: str = "REQUEST_ERROR"


class ValidationError(RequestError):
    """Submission, decision or comment input is missing or malformed."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class NotFoundError(RequestError):
    """Approval request with given id was not found."""

    code: str = "REQUEST_NOT_FOUND"

    def __init__(self, request_id: int):
        self.request_id = request_id
        super().__init__(f"Approval request not found: {request_id}")


class InvalidStateError(RequestError):
    """
    Decision attempted on a request that is no longer pending.

    Covers both double-decision races and stale-client retries.  Clients
    should treat it as "someone already decided this -- refresh".
    """

    code: str = "INVALID_REQUEST_STATE"

    def __init__(self, request_id: int, current_status: str, attempted: str):
        self.request_id = request_id
        self.current_status = current_status
        self.attempted = attempted
        super().__init__(
            f"Cannot {attempted} request {request_id}: "
            f"request is not pending (status: {current_status})"
        )


# Wallet-related exceptions


class WalletError(ApprovalKernelError):
    """Base exception for wallet hold errors."""

    code: str = "WALLET_ERROR"


class HoldConflictError(WalletError):
    """A wallet hold is already active for this request id."""

    code: str = "HOLD_ALREADY_EXISTS"

    def __init__(self, request_id: int):
        self.request_id = request_id
        super().__init__(f"Wallet hold already active for request {request_id}")


# Execution-related exceptions


class ExecutionFailure(ApprovalKernelError):
    """Base exception for post-approval change application errors."""

    code: str = "EXECUTION_FAILURE"


class ExecutionError(ExecutionFailure):
    """
    Applying an approved change failed.

    The approval decision itself stands.  This error is reported through
    logs, events and ``ApprovalRequestStore.execution_failures()``.
    """

    code: str = "CHANGE_EXECUTION_FAILED"

    def __init__(self, request_id: int, change_type: str, reason: str):
        self.request_id = request_id
        self.change_type = change_type
        self.reason = reason
        super().__init__(
            f"Failed to execute approved {change_type} for request "
            f"{request_id}: {reason}"
        )


# Immutability-related exceptions


class ImmutabilityError(ApprovalKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an append-only record.

    Comments and wallet adjustments are never changed once written.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Configuration-related exceptions


class ConfigurationError(ApprovalKernelError):
    """Governance settings failed validation."""

    code: str = "INVALID_CONFIGURATION"

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__(
            f"Invalid governance configuration: {len(errors)} error(s): "
            + "; ".join(errors)
        )
