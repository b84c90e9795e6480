"""Structural validator: checks a parsed document against a contract.

``validate`` is a pure function. It never raises for bad documents and never
mutates its inputs; every problem is reported as a Violation in the returned
ValidationOutcome. Violations come out in field declaration order, depth first.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from typing import Any, List, Optional, Tuple, Union

from .schemas import (
    BOOLEAN, NULL, NUMBER, STRING, ROOT_PATH,
    Contract, Enumerated, Node, Scalar, Sequence, Structured,
    ValidationOutcome, Violation,
    as_node, child_path, describe, format_allowed, index_path,
)

_FENCE_RE = re.compile(r"^\s*```[A-Za-z0-9_-]*[ \t]*\n(.*?)\n?[ \t]*```\s*$", re.DOTALL)


def json_type_name(value: Any) -> str:
    """Name of ``value``'s type in JSON terms."""
    if value is None:
        return NULL
    if isinstance(value, bool):
        return BOOLEAN
    if isinstance(value, (int, float)):
        return NUMBER
    if isinstance(value, str):
        return STRING
    if isinstance(value, Mapping):
        return "object"
    if isinstance(value, (list, tuple)):
        return "array"
    return type(value).__name__


def _matches_scalar(kind: str, value: Any) -> bool:
    if kind == STRING:
        return isinstance(value, str)
    if kind == NUMBER:
        # bool is an int subclass in Python but not a JSON number
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if kind == BOOLEAN:
        return isinstance(value, bool)
    if kind == NULL:
        return value is None
    return False


def _type_violation(path: str, expected: str, value: Any, shape: Optional[str] = None) -> Violation:
    return Violation(
        path=path,
        message=f"invalid type at {path}: expected {expected}, got {json_type_name(value)}",
        expected=shape or expected,
    )


def _walk(value: Any, node: Node, path: str, out: List[Violation]) -> None:
    if isinstance(node, Structured):
        if not isinstance(value, Mapping):
            out.append(_type_violation(path, "object", value, describe(node)))
            return
        for name, spec in node.fields:
            p = child_path(path, name)
            if name not in value:
                if spec.required:
                    out.append(Violation(path=p, message=f"missing field {p}", expected=describe(spec.node)))
                continue
            _walk(value[name], spec.node, p, out)
    elif isinstance(node, Sequence):
        if not isinstance(value, (list, tuple)):
            out.append(_type_violation(path, "array", value, describe(node)))
            return
        for i, item in enumerate(value):
            _walk(item, node.element, index_path(path, i), out)
    elif isinstance(node, Enumerated):
        if not isinstance(value, str):
            out.append(_type_violation(path, STRING, value, describe(node)))
        elif value not in node.allowed:
            out.append(Violation(
                path=path,
                message=f"invalid value at {path}: must be one of {format_allowed(node.allowed)}",
                expected=describe(node),
            ))
    elif isinstance(node, Scalar):
        if not _matches_scalar(node.kind, value):
            out.append(_type_violation(path, node.kind, value))


def validate(document: Any, contract: Union[Contract, Node]) -> ValidationOutcome:
    """Validate an already-parsed document."""
    violations: List[Violation] = []
    _walk(document, as_node(contract), ROOT_PATH, violations)
    if violations:
        return ValidationOutcome.failure(violations)
    return ValidationOutcome.success(document)


def strip_code_fence(text: str) -> str:
    m = _FENCE_RE.match(text)
    return m.group(1) if m else text


def parse_document(text: Any) -> Tuple[Any, Optional[str]]:
    """Parse producer text into a document. Returns (document, error_message)."""
    if not isinstance(text, str):
        return None, f"expected text, got {json_type_name(text)}"
    try:
        return json.loads(strip_code_fence(text)), None
    except (ValueError, RecursionError) as e:
        # deeply nested arrays/objects exhaust the decoder stack
        return None, str(e)


def validate_text(text: Any, contract: Union[Contract, Node]) -> ValidationOutcome:
    """Parse then validate; unparseable text yields one violation at the root."""
    document, error = parse_document(text)
    if error is not None:
        return ValidationOutcome.failure([
            Violation(
                path=ROOT_PATH,
                message=f"invalid document: {error}",
                expected=f"a well-formed JSON document ({describe(as_node(contract))})",
            )
        ])
    return validate(document, contract)
