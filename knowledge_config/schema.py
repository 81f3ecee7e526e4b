"""
WorkflowConfigurationSet schema.

Defines the human-authored, reviewable source artifact for the approval
workflow.  YAML is parsed into these types by the loader, checked by the
validator and compiled into a ``WorkflowConfig`` by the compiler.

Key distinction:
  WorkflowConfigurationSet = source artifact (human-authored, plain strings)
  WorkflowConfig           = runtime artifact (enums, indexed table, frozen)
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class AutoApprovalDef:
    """Auxiliary conditions attached to a transition."""

    min_confidence: float | None = None
    fact_types: tuple[str, ...] = ()
    trusted_sources: bool = False
    enforce: bool = True


@dataclass(frozen=True)
class TransitionDef:
    """One row of the transition table, as authored."""

    from_status: str
    to_status: str
    roles: tuple[str, ...]
    requires_comment: bool = False
    auto_approval: AutoApprovalDef | None = None


@dataclass(frozen=True)
class ActionPermissionDef:
    """Roles allowed to perform an action category at all.

    ``label`` and ``verb`` build the refusal message:
    "Insufficient permissions to {verb} facts. Requires {label} role."
    """

    action: str
    roles: tuple[str, ...]
    label: str
    verb: str


@dataclass(frozen=True)
class QueueLimitsDef:
    default_limit: int = 20
    max_limit: int = 100
    related_facts_limit: int = 10


@dataclass(frozen=True)
class WorkflowConfigurationSet:
    """Complete approval workflow configuration (source artifact)."""

    config_id: str
    version: int
    transitions: tuple[TransitionDef, ...]
    action_permissions: tuple[ActionPermissionDef, ...]
    queue: QueueLimitsDef = QueueLimitsDef()
    max_batch_size: int = 100
    checksum: str = ""
