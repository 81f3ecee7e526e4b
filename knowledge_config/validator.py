"""
Configuration Validator (``knowledge_config.validator``).

Responsibility
--------------
Validates a ``WorkflowConfigurationSet`` before it is compiled, so that a
bad table is rejected at load time instead of misbehaving per request.

Invariants enforced
-------------------
* Status, fact type and action names belong to the closed enums.
* No (from, to) pair appears twice; no rule maps a status to itself.
* Every rule and every action permission names at least one role.
* Auto-approval floors lie in [0, 1].
* Queue limits and the batch bound are positive, default <= max.

Failure modes
-------------
* Validation errors (``ConfigValidationResult.errors``)  -> configuration
  MUST NOT be compiled.
* Validation warnings  -> configuration may be compiled but should be
  reviewed.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from knowledge_kernel.domain.facts import ApprovalAction, ApprovalStatus, FactType

from knowledge_config.schema import WorkflowConfigurationSet

_STATUSES = {s.value for s in ApprovalStatus}
_FACT_TYPES = {t.value for t in FactType}
_ACTIONS = {a.value for a in ApprovalAction}


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    ``is_valid`` is True only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_configuration(config: WorkflowConfigurationSet) -> ConfigValidationResult:
    result = ConfigValidationResult()
    _validate_transitions(config, result)
    _validate_action_permissions(config, result)
    _validate_limits(config, result)
    return result


def _validate_transitions(
    config: WorkflowConfigurationSet,
    result: ConfigValidationResult,
) -> None:
    if not config.transitions:
        result.add_error("No transitions defined")

    seen: set[tuple[str, str]] = set()
    for rule in config.transitions:
        label = f"{rule.from_status} -> {rule.to_status}"
        if rule.from_status not in _STATUSES:
            result.add_error(f"{label}: unknown status '{rule.from_status}'")
        if rule.to_status not in _STATUSES:
            result.add_error(f"{label}: unknown status '{rule.to_status}'")
        if rule.from_status == rule.to_status:
            result.add_error(f"{label}: a status cannot transition to itself")

        key = (rule.from_status, rule.to_status)
        if key in seen:
            result.add_error(f"{label}: duplicate transition")
        seen.add(key)

        if not rule.roles:
            result.add_error(f"{label}: no roles allowed")

        auto = rule.auto_approval
        if auto is not None:
            if auto.min_confidence is not None and not 0.0 <= auto.min_confidence <= 1.0:
                result.add_error(
                    f"{label}: auto_approval.min_confidence {auto.min_confidence} "
                    "outside [0, 1]"
                )
            for fact_type in auto.fact_types:
                if fact_type not in _FACT_TYPES:
                    result.add_error(f"{label}: unknown fact type '{fact_type}'")
            if (rule.from_status, rule.to_status) != (
                ApprovalStatus.PENDING.value, ApprovalStatus.APPROVED.value,
            ):
                result.add_warning(
                    f"{label}: auto_approval is only evaluated on Pending -> Approved"
                )


def _validate_action_permissions(
    config: WorkflowConfigurationSet,
    result: ConfigValidationResult,
) -> None:
    declared: set[str] = set()
    for permission in config.action_permissions:
        if permission.action not in _ACTIONS:
            result.add_error(f"Unknown action '{permission.action}'")
        if not permission.roles:
            result.add_error(f"Action '{permission.action}': no roles allowed")
        declared.add(permission.action)

    for action in sorted(_ACTIONS - declared):
        result.add_warning(
            f"Action '{action}' has no permission entry; it is open to any role"
        )


def _validate_limits(
    config: WorkflowConfigurationSet,
    result: ConfigValidationResult,
) -> None:
    queue = config.queue
    if queue.default_limit <= 0:
        result.add_error("queue.default_limit must be positive")
    if queue.max_limit <= 0:
        result.add_error("queue.max_limit must be positive")
    if queue.default_limit > queue.max_limit:
        result.add_error("queue.default_limit exceeds queue.max_limit")
    if queue.related_facts_limit <= 0:
        result.add_error("queue.related_facts_limit must be positive")
    if config.max_batch_size <= 0:
        result.add_error("max_batch_size must be positive")
