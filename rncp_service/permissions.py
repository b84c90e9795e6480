"""Permission gate and predicate builders.

The gate owns *where* authorization happens (immediately before dispatch,
every time); what is allowed is decided by each action's own predicate.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from .actions import ActionDefinition, ExecutionContext

logger = logging.getLogger(__name__)

Predicate = Callable[["ExecutionContext"], bool]


def allow_all(context: "ExecutionContext") -> bool:
    return True


def require_permissions(*names: str) -> Predicate:
    """Context must hold every one of ``names``."""
    required = frozenset(names)

    def predicate(context: "ExecutionContext") -> bool:
        return required.issubset(context.permissions)

    predicate.__name__ = f"require_permissions({', '.join(sorted(required))})"
    return predicate


def require_environment(*environments: str) -> Predicate:
    allowed = frozenset(environments)

    def predicate(context: "ExecutionContext") -> bool:
        return context.environment in allowed

    predicate.__name__ = f"require_environment({', '.join(sorted(allowed))})"
    return predicate


def all_of(*predicates: Predicate) -> Predicate:
    def predicate(context: "ExecutionContext") -> bool:
        return all(p(context) is True for p in predicates)

    predicate.__name__ = "all_of(" + ", ".join(getattr(p, "__name__", repr(p)) for p in predicates) + ")"
    return predicate


class PermissionGate:
    def authorize(self, action: "ActionDefinition", context: "ExecutionContext") -> bool:
        """True only when the action's predicate returns exactly True.

        A predicate that raises counts as a refusal.
        """
        try:
            allowed = action.permission(context)
        except Exception:
            logger.exception(
                "permission predicate for action %s raised; denying actor %s",
                action.identifier, getattr(context, "actor_id", None),
            )
            return False
        if allowed is not True:
            logger.info(
                "permission denied: action=%s actor=%s request=%s",
                action.identifier, getattr(context, "actor_id", None), getattr(context, "request_id", None),
            )
            return False
        return True
