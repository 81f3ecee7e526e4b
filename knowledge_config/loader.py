"""
Configuration Loader (``knowledge_config.loader``).

Responsibility
--------------
Loads the workflow YAML file and parses it into typed
``knowledge_config.schema`` dataclass instances.  Runtime callers use
``knowledge_config.get_workflow_config()`` instead.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* No silent defaults for required keys: a missing key raises
  ``KeyError`` naming it.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the raw
  document for identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from knowledge_config.schema import (
    ActionPermissionDef,
    AutoApprovalDef,
    QueueLimitsDef,
    TransitionDef,
    WorkflowConfigurationSet,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file; an empty file yields an empty dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _as_tuple(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(v) for v in value)


def parse_auto_approval(data: dict[str, Any] | None) -> AutoApprovalDef | None:
    if not data:
        return None
    min_confidence = data.get("min_confidence")
    return AutoApprovalDef(
        min_confidence=float(min_confidence) if min_confidence is not None else None,
        fact_types=_as_tuple(data.get("fact_types")),
        trusted_sources=bool(data.get("trusted_sources", False)),
        enforce=bool(data.get("enforce", True)),
    )


def parse_transition(data: dict[str, Any]) -> TransitionDef:
    return TransitionDef(
        from_status=str(data["from"]),
        to_status=str(data["to"]),
        roles=_as_tuple(data["roles"]),
        requires_comment=bool(data.get("requires_comment", False)),
        auto_approval=parse_auto_approval(data.get("auto_approval")),
    )


def parse_action_permission(action: str, data: dict[str, Any]) -> ActionPermissionDef:
    return ActionPermissionDef(
        action=str(action),
        roles=_as_tuple(data["roles"]),
        label=str(data["label"]),
        verb=str(data.get("verb", action)),
    )


def parse_queue_limits(data: dict[str, Any] | None) -> QueueLimitsDef:
    data = data or {}
    defaults = QueueLimitsDef()
    return QueueLimitsDef(
        default_limit=int(data.get("default_limit", defaults.default_limit)),
        max_limit=int(data.get("max_limit", defaults.max_limit)),
        related_facts_limit=int(
            data.get("related_facts_limit", defaults.related_facts_limit)
        ),
    )


def parse_configuration(data: dict[str, Any]) -> WorkflowConfigurationSet:
    """Parse a complete workflow document."""
    permissions = data.get("action_permissions") or {}
    return WorkflowConfigurationSet(
        config_id=str(data["config_id"]),
        version=int(data.get("version", 1)),
        transitions=tuple(parse_transition(t) for t in data["transitions"]),
        action_permissions=tuple(
            parse_action_permission(action, spec)
            for action, spec in permissions.items()
        ),
        queue=parse_queue_limits(data.get("queue")),
        max_batch_size=int(data.get("max_batch_size", 100)),
        checksum=compute_checksum(data),
    )


def load_configuration(path: Path) -> WorkflowConfigurationSet:
    return parse_configuration(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
