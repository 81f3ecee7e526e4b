"""
Workflow compiler -- WorkflowConfigurationSet -> WorkflowConfig.

Responsibility:
    Turn the validated source artifact into the frozen runtime artifact
    the services consume: enums instead of strings, a ``TransitionTable``
    indexed by source status and a permission map keyed by action.

Preconditions:
    The configuration set passed ``validate_configuration``.  Compiling
    an invalid set raises ``ValueError`` from the enum constructors.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from knowledge_kernel.domain.facts import (
    ApprovalAction,
    ApprovalStatus,
    FactType,
)
from knowledge_kernel.domain.workflow import (
    ActionPermission,
    AutoApprovalRule,
    TransitionTable,
    WorkflowTransition,
)

from knowledge_config.schema import (
    AutoApprovalDef,
    TransitionDef,
    WorkflowConfigurationSet,
)


@dataclass(frozen=True)
class WorkflowConfig:
    """Runtime workflow configuration.  Hold it for the process lifetime."""

    config_id: str
    version: int
    checksum: str
    table: TransitionTable
    action_permissions: dict[ApprovalAction, ActionPermission] = field(
        default_factory=dict,
    )
    default_limit: int = 20
    max_limit: int = 100
    related_facts_limit: int = 10
    max_batch_size: int = 100


def compile_auto_approval(definition: AutoApprovalDef | None) -> AutoApprovalRule | None:
    if definition is None:
        return None
    return AutoApprovalRule(
        min_confidence=definition.min_confidence,
        allowed_fact_types=frozenset(FactType(t) for t in definition.fact_types),
        trusted_sources=definition.trusted_sources,
        enforce=definition.enforce,
    )


def compile_transition(definition: TransitionDef) -> WorkflowTransition:
    return WorkflowTransition(
        from_status=ApprovalStatus(definition.from_status),
        to_status=ApprovalStatus(definition.to_status),
        allowed_roles=frozenset(definition.roles),
        requires_comment=definition.requires_comment,
        auto_approval=compile_auto_approval(definition.auto_approval),
    )


def compile_workflow(config: WorkflowConfigurationSet) -> WorkflowConfig:
    permissions = {
        ApprovalAction(p.action): ActionPermission(
            action=ApprovalAction(p.action),
            roles=frozenset(p.roles),
            label=p.label,
            verb=p.verb,
        )
        for p in config.action_permissions
    }
    return WorkflowConfig(
        config_id=config.config_id,
        version=config.version,
        checksum=config.checksum,
        table=TransitionTable(compile_transition(t) for t in config.transitions),
        action_permissions=permissions,
        default_limit=config.queue.default_limit,
        max_limit=config.queue.max_limit,
        related_facts_limit=config.queue.related_facts_limit,
        max_batch_size=config.max_batch_size,
    )
