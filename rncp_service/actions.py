from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, FrozenSet, Optional, Union

from .schemas import Contract, Node, as_node

ENVIRONMENTS = ("development", "testing", "production")


# ============================================================================
# EXECUTION CONTEXT
# ============================================================================

@dataclass(frozen=True)
class ExecutionContext:
    """Who is asking, with which permissions, where. Read-only for the whole request."""
    actor_id: str
    permissions: FrozenSet[str] = frozenset()
    environment: str = "development"
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self):
        perms = self.permissions
        if isinstance(perms, str):
            perms = (perms,)
        object.__setattr__(self, "permissions", frozenset(perms))
        if self.environment not in ENVIRONMENTS:
            raise ValueError(f"environment must be one of {list(ENVIRONMENTS)}, got {self.environment!r}")

    def has_permission(self, name: str) -> bool:
        return name in self.permissions

    def to_dict(self) -> Dict[str, Any]:
        return {
            "actor_id": self.actor_id,
            "permissions": sorted(self.permissions),
            "environment": self.environment,
            "request_id": self.request_id,
        }


# ============================================================================
# OUTCOMES
# ============================================================================

@dataclass(frozen=True)
class ErrorInfo:
    code: str
    message: str
    details: Any = None

    def to_dict(self) -> Dict[str, Any]:
        d = {"code": self.code, "message": self.message}
        if self.details is not None:
            d["details"] = self.details
        return d


@dataclass(frozen=True)
class ActionOutcome:
    """Uniform dispatch result: ``data`` on success, ``error`` on failure, never both."""
    success: bool
    data: Any = None
    error: Optional[ErrorInfo] = None

    def __post_init__(self):
        if self.success and self.error is not None:
            raise ValueError("successful outcome cannot carry an error")
        if not self.success:
            if self.error is None:
                raise ValueError("failed outcome requires an error")
            if self.data is not None:
                raise ValueError("failed outcome cannot carry data")

    @classmethod
    def ok(cls, data: Any = None) -> "ActionOutcome":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, code: str, message: str, details: Any = None) -> "ActionOutcome":
        return cls(success=False, error=ErrorInfo(code, message, details))

    def to_dict(self) -> Dict[str, Any]:
        if self.success:
            return {"success": True, "data": self.data}
        return {"success": False, "error": self.error.to_dict()}


# ============================================================================
# ACTION DEFINITION
# ============================================================================

PermissionPredicate = Callable[[ExecutionContext], bool]
# handler(params, context) -> data | ActionOutcome, sync or async
ActionHandler = Callable[[Dict[str, Any], ExecutionContext], Union[Any, Awaitable[Any]]]


@dataclass(frozen=True)
class ActionDefinition:
    identifier: str
    input_schema: Node
    permission: PermissionPredicate
    handler: ActionHandler
    name: str = ""
    description: str = ""

    def __post_init__(self):
        if not isinstance(self.identifier, str) or not self.identifier:
            raise ValueError("action identifier must be a non-empty string")
        if isinstance(self.input_schema, (Contract, Mapping)):
            object.__setattr__(self, "input_schema", as_node(self.input_schema))
        else:
            as_node(self.input_schema)
        if not callable(self.permission):
            raise ValueError(f"permission predicate for {self.identifier} is not callable")
        if not callable(self.handler):
            raise ValueError(f"handler for {self.identifier} is not callable")
        if not self.name:
            object.__setattr__(self, "name", self.identifier)
