"""
Structural contracts for producer output.

A contract is plain data: a tree of frozen node objects. Four node kinds exist:

- Scalar(kind): string, number, boolean or null
- Enumerated(allowed): one of a fixed list of string literals
- Structured(fields): an object; declared fields are type-checked, unknown
  fields are ignored, required fields must be present
- Sequence(element): a list whose every element matches ``element``

Nodes are immutable and built bottom-up, so a contract cannot reference itself.
Contracts can also be written in the dictionary form used by chat-model
"JSON mode" prompts (``{"type": "object", "properties": ..., "required": ...}``)
and converted with ``node_from_json_schema``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from .errors import SchemaDefinitionError

STRING = "string"
NUMBER = "number"
BOOLEAN = "boolean"
NULL = "null"
SCALAR_KINDS = (STRING, NUMBER, BOOLEAN, NULL)

OBJECT = "object"
ARRAY = "array"

ROOT_PATH = "$"


# ============================================================================
# NODES
# ============================================================================

@dataclass(frozen=True)
class Scalar:
    kind: str

    def __post_init__(self):
        if self.kind not in SCALAR_KINDS:
            raise SchemaDefinitionError(
                f"unknown scalar kind {self.kind!r}; expected one of {list(SCALAR_KINDS)}"
            )


@dataclass(frozen=True)
class Enumerated:
    """String literal drawn from ``allowed``; declaration order is kept for messages."""

    allowed: Tuple[str, ...]

    def __post_init__(self):
        values = tuple(self.allowed) if not isinstance(self.allowed, str) else (self.allowed,)
        if not values:
            raise SchemaDefinitionError("enumeration must allow at least one value")
        for v in values:
            if not isinstance(v, str):
                raise SchemaDefinitionError(f"enumeration values must be strings, got {v!r}")
        # dedupe, keep first occurrence
        object.__setattr__(self, "allowed", tuple(dict.fromkeys(values)))


@dataclass(frozen=True)
class FieldSpec:
    node: "Node"
    required: bool = False

    def __post_init__(self):
        _check_node(self.node, "field")


@dataclass(frozen=True)
class Structured:
    """Object node. ``fields`` accepts a mapping of name -> FieldSpec (or bare node)."""

    fields: Tuple[Tuple[str, FieldSpec], ...] = ()

    def __post_init__(self):
        raw = self.fields.items() if isinstance(self.fields, Mapping) else self.fields
        normalized: List[Tuple[str, FieldSpec]] = []
        seen = set()
        for name, spec in raw:
            if not isinstance(name, str) or not name:
                raise SchemaDefinitionError(f"field names must be non-empty strings, got {name!r}")
            if name in seen:
                raise SchemaDefinitionError(f"duplicate field {name!r}")
            seen.add(name)
            if not isinstance(spec, FieldSpec):
                spec = FieldSpec(spec)
            normalized.append((name, spec))
        object.__setattr__(self, "fields", tuple(normalized))

    def field_names(self) -> List[str]:
        return [name for name, _ in self.fields]

    def required_fields(self) -> List[str]:
        return [name for name, spec in self.fields if spec.required]


@dataclass(frozen=True)
class Sequence:
    element: "Node"

    def __post_init__(self):
        _check_node(self.element, "sequence element")


Node = Union[Scalar, Enumerated, Structured, Sequence]
NODE_TYPES = (Scalar, Enumerated, Structured, Sequence)


def _check_node(node: Any, where: str) -> None:
    if not isinstance(node, NODE_TYPES):
        raise SchemaDefinitionError(f"{where} must be a contract node, got {type(node).__name__}")


@dataclass(frozen=True)
class Contract:
    name: str
    root: Node
    description: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name:
            raise SchemaDefinitionError("contract name must be a non-empty string")
        _check_node(self.root, "contract root")


# ============================================================================
# VALIDATION RESULTS
# ============================================================================

@dataclass(frozen=True)
class Violation:
    path: str
    message: str
    expected: str

    def to_dict(self) -> Dict[str, str]:
        return {"path": self.path, "message": self.message, "expected": self.expected}


@dataclass(frozen=True)
class ValidationOutcome:
    valid: bool
    violations: Tuple[Violation, ...] = field(default_factory=tuple)
    # the parsed document, only when valid
    value: Any = None

    @classmethod
    def success(cls, value: Any) -> "ValidationOutcome":
        return cls(valid=True, violations=(), value=value)

    @classmethod
    def failure(cls, violations) -> "ValidationOutcome":
        return cls(valid=False, violations=tuple(violations), value=None)

    @property
    def messages(self) -> List[str]:
        return [v.message for v in self.violations]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "violations": [v.to_dict() for v in self.violations],
            "value": self.value,
        }


# ============================================================================
# PATHS AND DESCRIPTIONS
# ============================================================================

def child_path(parent: str, name: str) -> str:
    if parent == ROOT_PATH:
        return name
    return f"{parent}.{name}"


def index_path(parent: str, index: int) -> str:
    return f"{parent}[{index}]"


def format_allowed(allowed) -> str:
    return "[" + ", ".join(allowed) + "]"


def describe(node: Node) -> str:
    """Short human-readable shape of a node, used as a violation's ``expected``."""
    if isinstance(node, Scalar):
        return node.kind
    if isinstance(node, Enumerated):
        return f"one of {format_allowed(node.allowed)}"
    if isinstance(node, Sequence):
        return f"array of {describe(node.element)}"
    if isinstance(node, Structured):
        required = node.required_fields()
        if required:
            return f"object with required fields {format_allowed(required)}"
        return OBJECT
    raise SchemaDefinitionError(f"not a contract node: {node!r}")


# ============================================================================
# DICTIONARY FORM
# ============================================================================

def node_from_json_schema(schema: Mapping, _path: str = ROOT_PATH, _seen: frozenset = frozenset()) -> Node:
    """Convert ``{"type": ..., "properties": ..., "required": ..., "items": ..., "enum": ...}``.

    Raises SchemaDefinitionError on unknown type names, arrays without
    ``items``, required names that are not declared properties, and
    dictionaries that contain themselves.
    """
    if not isinstance(schema, Mapping):
        raise SchemaDefinitionError(f"schema at {_path} must be a mapping, got {type(schema).__name__}")
    if id(schema) in _seen:
        raise SchemaDefinitionError(f"schema at {_path} references itself")
    seen = _seen | {id(schema)}

    typ = schema.get("type")
    enum = schema.get("enum")
    if enum is not None:
        if typ not in (None, STRING):
            raise SchemaDefinitionError(f"enum at {_path} is only supported on string properties")
        if isinstance(enum, (str, bytes)) or not isinstance(enum, (list, tuple)):
            raise SchemaDefinitionError(f"enum at {_path} must be a list of strings")
        return Enumerated(tuple(enum))

    if typ in SCALAR_KINDS:
        return Scalar(typ)

    if typ == OBJECT:
        props = schema.get("properties") or {}
        if not isinstance(props, Mapping):
            raise SchemaDefinitionError(f"properties at {_path} must be a mapping")
        required = schema.get("required") or []
        if isinstance(required, str) or not isinstance(required, (list, tuple)):
            raise SchemaDefinitionError(f"required at {_path} must be a list of field names")
        undeclared = [name for name in required if name not in props]
        if undeclared:
            raise SchemaDefinitionError(
                f"required fields {undeclared} at {_path} are not declared in properties"
            )
        fields = []
        for name, sub in props.items():
            node = node_from_json_schema(sub, child_path(_path, name), seen)
            fields.append((name, FieldSpec(node, required=name in required)))
        return Structured(tuple(fields))

    if typ == ARRAY:
        if "items" not in schema:
            raise SchemaDefinitionError(f"array at {_path} must declare items")
        return Sequence(node_from_json_schema(schema["items"], f"{_path}[]", seen))

    raise SchemaDefinitionError(f"unknown type {typ!r} at {_path}")


def node_to_json_schema(node: Node) -> Dict[str, Any]:
    """Inverse of node_from_json_schema, used when listing contracts."""
    if isinstance(node, Scalar):
        return {"type": node.kind}
    if isinstance(node, Enumerated):
        return {"type": STRING, "enum": list(node.allowed)}
    if isinstance(node, Sequence):
        return {"type": ARRAY, "items": node_to_json_schema(node.element)}
    if isinstance(node, Structured):
        return {
            "type": OBJECT,
            "properties": {name: node_to_json_schema(spec.node) for name, spec in node.fields},
            "required": node.required_fields(),
        }
    raise SchemaDefinitionError(f"not a contract node: {node!r}")


def as_node(schema: Union[Node, Contract, Mapping]) -> Node:
    if isinstance(schema, Contract):
        return schema.root
    if isinstance(schema, NODE_TYPES):
        return schema
    return node_from_json_schema(schema)


__all__ = [
    "Scalar", "Enumerated", "FieldSpec", "Structured", "Sequence", "Node", "Contract",
    "Violation", "ValidationOutcome", "ROOT_PATH", "describe", "child_path", "index_path",
    "node_from_json_schema", "node_to_json_schema", "as_node",
]
