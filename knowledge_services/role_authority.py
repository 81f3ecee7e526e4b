"""
knowledge_services.role_authority -- Action-category role enforcement.

Responsibility:
    Check that a caller may perform an action category (approve, reject,
    escalate, ...) at all, before any fact is read.  This is coarser than
    the transition table: it answers "may this person approve facts?",
    the table answers "may this person move THIS fact from X to Y?".

Architecture position:
    Services layer.  Consumes the action permissions compiled by
    knowledge_config.  Called by the decision processor per decision
    and by the batch processor once per batch.

Invariants:
    - An action with no configured permission is open to any role.
    - Role identity is not resolved here; the caller supplies roles.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from knowledge_kernel.domain.facts import ApprovalAction, normalize_roles
from knowledge_kernel.domain.workflow import ActionPermission
from knowledge_kernel.exceptions import InsufficientPermissionError


def permission_message(permission: ActionPermission) -> str:
    return (
        f"Insufficient permissions to {permission.verb} facts. "
        f"Requires {permission.label} role."
    )


def check_action_permission(
    permissions: Mapping[ApprovalAction, ActionPermission],
    action: ApprovalAction,
    caller_roles: Iterable[str],
) -> tuple[bool, str]:
    """Check whether the caller may perform ``action``.

    Returns:
        (allowed, reason). reason is empty when allowed.
    """
    permission = permissions.get(action)
    if permission is None:
        return (True, "")
    if permission.roles & normalize_roles(caller_roles):
        return (True, "")
    return (False, permission_message(permission))


def require_action_permission(
    permissions: Mapping[ApprovalAction, ActionPermission],
    action: ApprovalAction,
    caller_roles: Iterable[str],
) -> None:
    """Raise InsufficientPermissionError unless the caller may act."""
    allowed, reason = check_action_permission(permissions, action, caller_roles)
    if not allowed:
        raise InsufficientPermissionError(action.value, reason)
