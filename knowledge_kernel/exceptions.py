"""
Typed Exception Hierarchy for the Knowledge Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

The approval workflow is consumed by a thin request-handling layer that
has to turn failures into status codes and by a batch processor that has
to turn them into per-item failure records.  Both need to know WHAT went
wrong without parsing message strings.

Every error therefore:
  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes (fact_id, roles, ...)

Example - WRONG way to handle errors:
    try:
        processor.decide(fact_id, decision, user_id, roles)
    except Exception as e:
        if "not found" in str(e):  # FRAGILE
            return 404

Example - RIGHT way:
    try:
        processor.decide(fact_id, decision, user_id, roles)
    except NotFoundError as e:
        return 404, {"code": e.code, "message": str(e)}
    except ForbiddenError as e:
        return 403, {"code": e.code, "message": str(e)}

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    KnowledgeKernelError (base)
    |
    +-- NotFoundError
    |   +-- FactNotFoundError
    |   +-- SourceNotFoundError
    |
    +-- ForbiddenError
    |   +-- InsufficientPermissionError
    |   +-- InsufficientRoleError
    |   +-- TransitionNotAllowedError
    |   +-- AutoApprovalCriteriaError
    |   +-- ClassificationAccessError
    |
    +-- InvalidRequestError
    |   +-- CommentRequiredError
    |   +-- RejectionReasonRequiredError
    |   +-- InvalidConfidenceError
    |   +-- InvalidSourceReferenceError
    |   +-- InvalidBatchError
    |   +-- InvalidQueryError
    |   +-- UnknownValueError
    |
    +-- ConflictError
    |   +-- TransitionConflictError
    |
    +-- WorkflowConfigError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Not found       | FACT_NOT_FOUND              | Fact missing or soft-deleted
                | SOURCE_NOT_FOUND            | Referenced document/communication missing
----------------|-----------------------------|-----------------------------------------
Forbidden       | INSUFFICIENT_PERMISSION     | Caller lacks the action category role
                | INSUFFICIENT_ROLE           | Caller lacks the transition rule's role
                | TRANSITION_NOT_ALLOWED      | No rule for (from, to)
                | AUTO_APPROVAL_CRITERIA      | Fact fails the rule's auto-approval gate
                | CLASSIFICATION_ACCESS       | Fact above the caller's clearance
----------------|-----------------------------|-----------------------------------------
Invalid request | COMMENT_REQUIRED            | Rule requires a comment, none supplied
                | REJECTION_REASON_REQUIRED   | Rejecting with neither reason nor comment
                | INVALID_CONFIDENCE          | Confidence outside [0, 1]
                | INVALID_SOURCE_REFERENCE    | Both document and communication given
                | INVALID_BATCH               | Empty, duplicate or oversized batch
                | INVALID_QUERY               | Bad pagination/range options
                | UNKNOWN_VALUE               | Action or status outside its enum
----------------|-----------------------------|-----------------------------------------
Conflict        | TRANSITION_CONFLICT         | Status changed under a concurrent writer
----------------|-----------------------------|-----------------------------------------
Config          | WORKFLOW_CONFIG_INVALID     | Workflow YAML failed validation

===============================================================================
DESIGN DECISIONS
===============================================================================

1. WHY FOUR CATEGORY BASES?
   The request layer maps categories to responses (404 / 403 / 400 / 409)
   without knowing individual classes.  ConflictError is separate from
   InvalidRequestError because the input was valid when issued; callers
   may re-read and retry.

2. WHY code CLASS ATTRIBUTE (not instance)?
   Codes are static per exception type.  The batch processor copies
   ``exc.code`` into each failure record.

===============================================================================
"""


class KnowledgeKernelError(Exception):
    """
    Base exception for all knowledge kernel errors.

    All subclasses must have a `code` class attribute for
    machine-readable error identification.
    """

    code: str = "KNOWLEDGE_KERNEL_ERROR"


# Not found


class NotFoundError(KnowledgeKernelError):
    """Base exception for missing or inactive entities."""

    code: str = "NOT_FOUND"


class FactNotFoundError(NotFoundError):
    """Fact does not exist or has been soft-deleted."""

    code: str = "FACT_NOT_FOUND"

    def __init__(self, fact_id: str):
        self.fact_id = fact_id
        super().__init__(f"Fact not found: {fact_id}")


class SourceNotFoundError(NotFoundError):
    """Referenced source document or communication does not exist."""

    code: str = "SOURCE_NOT_FOUND"

    def __init__(self, source_type: str, source_id: str):
        self.source_type = source_type
        self.source_id = source_id
        super().__init__(
            f"Source {source_type.lower()} with ID {source_id} not found"
        )


# Forbidden


class ForbiddenError(KnowledgeKernelError):
    """Base exception for authorization failures."""

    code: str = "FORBIDDEN"


class InsufficientPermissionError(ForbiddenError):
    """Caller holds no role for the action category at all.

    Raised before any fact is read, so a batch call fails outright.
    """

    code: str = "INSUFFICIENT_PERMISSION"

    def __init__(self, action: str, reason: str):
        self.action = action
        self.reason = reason
        super().__init__(reason)


class InsufficientRoleError(ForbiddenError):
    """Transition rule exists but the caller holds none of its roles."""

    code: str = "INSUFFICIENT_ROLE"

    def __init__(
        self,
        from_status: str,
        to_status: str,
        required_roles: tuple[str, ...],
        reason: str,
    ):
        self.from_status = from_status
        self.to_status = to_status
        self.required_roles = required_roles
        super().__init__(reason)


class TransitionNotAllowedError(ForbiddenError):
    """No workflow rule exists for the requested status pair."""

    code: str = "TRANSITION_NOT_ALLOWED"

    def __init__(self, from_status: str, to_status: str, reason: str):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(reason)


class AutoApprovalCriteriaError(ForbiddenError):
    """Direct approval rule is gated and the fact does not qualify."""

    code: str = "AUTO_APPROVAL_CRITERIA"

    def __init__(self, fact_id: str, confidence: float, fact_type: str):
        self.fact_id = fact_id
        self.confidence = confidence
        self.fact_type = fact_type
        super().__init__(
            f"Fact {fact_id} does not meet auto-approval criteria "
            f"(confidence={confidence:.3f}, type={fact_type})"
        )


class ClassificationAccessError(ForbiddenError):
    """Fact exists but lies above the caller's clearance."""

    code: str = "CLASSIFICATION_ACCESS"

    def __init__(self, fact_id: str, clearance_level: str):
        self.fact_id = fact_id
        self.clearance_level = clearance_level
        super().__init__(
            "User has insufficient permissions to access this fact"
        )


# Invalid request


class InvalidRequestError(KnowledgeKernelError):
    """Base exception for malformed or policy-violating input."""

    code: str = "INVALID_REQUEST"


class CommentRequiredError(InvalidRequestError):
    """The matched transition rule requires a non-empty comment."""

    code: str = "COMMENT_REQUIRED"

    def __init__(self, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__("Comments are required for this action")


class RejectionReasonRequiredError(InvalidRequestError):
    """A rejection needs either a structured reason or a comment."""

    code: str = "REJECTION_REASON_REQUIRED"

    def __init__(self, fact_id: str):
        self.fact_id = fact_id
        super().__init__(f"A rejection reason is required to reject fact {fact_id}")


class InvalidConfidenceError(InvalidRequestError):
    """Submitted confidence lies outside [0, 1]."""

    code: str = "INVALID_CONFIDENCE"

    def __init__(self, value: float):
        self.value = value
        super().__init__(f"Confidence must be between 0.0 and 1.0, got {value}")


class InvalidSourceReferenceError(InvalidRequestError):
    """A fact may reference a document or a communication, never both."""

    code: str = "INVALID_SOURCE_REFERENCE"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class InvalidBatchError(InvalidRequestError):
    """Bulk request is empty, has duplicate ids or exceeds the bound."""

    code: str = "INVALID_BATCH"

    def __init__(self, reason: str, size: int):
        self.reason = reason
        self.size = size
        super().__init__(reason)


class InvalidQueryError(InvalidRequestError):
    """Queue filters or pagination options are out of range."""

    code: str = "INVALID_QUERY"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class UnknownValueError(InvalidRequestError):
    """An action or status string names no member of its enum."""

    code: str = "UNKNOWN_VALUE"

    def __init__(self, kind: str, value: object):
        self.kind = kind
        self.value = value
        super().__init__(f"Unknown {kind}: {value}")


# Conflict


class ConflictError(KnowledgeKernelError):
    """Base exception for concurrent-modification failures."""

    code: str = "CONFLICT"


class TransitionConflictError(ConflictError):
    """Conditional status update matched no row.

    Another writer changed the fact between read and write.
    """

    code: str = "TRANSITION_CONFLICT"

    def __init__(self, fact_id: str, expected_status: str, expected_version: int):
        self.fact_id = fact_id
        self.expected_status = expected_status
        self.expected_version = expected_version
        super().__init__(
            f"Fact {fact_id} was modified concurrently: expected status "
            f"{expected_status} at version {expected_version}"
        )


# Configuration


class WorkflowConfigError(KnowledgeKernelError):
    """Workflow configuration failed validation."""

    code: str = "WORKFLOW_CONFIG_INVALID"

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__(
            "Workflow configuration is invalid: " + "; ".join(errors)
        )
