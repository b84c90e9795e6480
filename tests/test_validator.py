"""Tests for the structural validator."""

import copy
import json
import re

import pytest

from rncp_service.schemas import (
    Contract, Enumerated, FieldSpec, Scalar, Sequence, Structured, node_from_json_schema,
)
from rncp_service.validator import json_type_name, parse_document, validate, validate_text


ORDER = Structured({
    "id": FieldSpec(Scalar("string"), required=True),
    "quantity": FieldSpec(Scalar("number"), required=True),
    "express": FieldSpec(Scalar("boolean")),
    "note": FieldSpec(Scalar("null")),
    "status": FieldSpec(Enumerated(("open", "closed")), required=True),
    "customer": FieldSpec(Structured({
        "name": FieldSpec(Scalar("string"), required=True),
        "tier": FieldSpec(Enumerated(("gold", "silver"))),
    }), required=True),
    "lines": FieldSpec(Sequence(Structured({
        "sku": FieldSpec(Scalar("string"), required=True),
        "qty": FieldSpec(Scalar("number"), required=True),
    })), required=True),
    "tags": FieldSpec(Sequence(Scalar("string"))),
})

CONFORMING = {
    "id": "ord-1",
    "quantity": 3,
    "express": False,
    "note": None,
    "status": "open",
    "customer": {"name": "Acme", "tier": "gold"},
    "lines": [{"sku": "a", "qty": 1}, {"sku": "b", "qty": 2.5}],
    "tags": ["x", "y", "z"],
}

# a value of the wrong type for every leaf kind
WRONG_FOR = {"string": 123, "number": "123", "boolean": "true", "null": False}


def _tokens(path):
    return [int(i) if i else name for name, i in re.findall(r"([A-Za-z_]+)|\[(\d+)\]", path)]


def _set(doc, path, value):
    *parents, last = _tokens(path)
    target = doc
    for t in parents:
        target = target[t]
    target[last] = value


def _delete(doc, path):
    *parents, last = _tokens(path)
    target = doc
    for t in parents:
        target = target[t]
    del target[last]


def _leaves(node, value, path):
    """Yield (path, wrong_value) for every scalar/enum position present in ``value``."""
    if isinstance(node, Structured):
        for name, spec in node.fields:
            if name in value:
                p = name if path == "$" else f"{path}.{name}"
                yield from _leaves(spec.node, value[name], p)
    elif isinstance(node, Sequence):
        for i, item in enumerate(value):
            yield from _leaves(node.element, item, f"{path}[{i}]")
    elif isinstance(node, Enumerated):
        yield path, "__not_allowed__"
    else:
        yield path, WRONG_FOR[node.kind]


def _required_paths(node, value, path):
    if isinstance(node, Structured):
        for name, spec in node.fields:
            p = name if path == "$" else f"{path}.{name}"
            if spec.required:
                yield p
            if name in value:
                yield from _required_paths(spec.node, value[name], p)
    elif isinstance(node, Sequence):
        for i, item in enumerate(value):
            yield from _required_paths(node.element, item, f"{path}[{i}]")


def test_conforming_document_is_valid():
    outcome = validate(CONFORMING, ORDER)
    assert outcome.valid
    assert outcome.violations == ()
    assert outcome.value is CONFORMING


@pytest.mark.parametrize("path,wrong", list(_leaves(ORDER, CONFORMING, "$")))
def test_single_leaf_mutation_yields_exactly_one_violation(path, wrong):
    doc = copy.deepcopy(CONFORMING)
    _set(doc, path, wrong)
    outcome = validate(doc, ORDER)
    assert not outcome.valid
    assert len(outcome.violations) == 1
    assert outcome.violations[0].path == path
    assert outcome.value is None


@pytest.mark.parametrize("path", list(_required_paths(ORDER, CONFORMING, "$")))
def test_removing_a_required_field_yields_exactly_one_violation(path):
    doc = copy.deepcopy(CONFORMING)
    _delete(doc, path)
    outcome = validate(doc, ORDER)
    assert [v.message for v in outcome.violations] == [f"missing field {path}"]
    assert outcome.violations[0].path == path


def test_removing_optional_fields_stays_valid():
    doc = copy.deepcopy(CONFORMING)
    for name in ("express", "note", "tags"):
        del doc[name]
    del doc["customer"]["tier"]
    assert validate(doc, ORDER).valid


def test_enum_violation_message(file_op_schema):
    contract = node_from_json_schema(file_op_schema)
    outcome = validate({"operation": "delete", "path": "/x"}, contract)
    assert outcome.messages == ["invalid value at operation: must be one of [read, write]"]
    assert outcome.violations[0].expected == "one of [read, write]"


def test_missing_field_message(file_op_schema):
    contract = node_from_json_schema(file_op_schema)
    outcome = validate({"path": "/x"}, contract)
    assert outcome.messages == ["missing field operation"]


def test_unknown_fields_are_ignored(file_op_schema):
    contract = node_from_json_schema(file_op_schema)
    outcome = validate({"operation": "read", "path": "/x", "extra": {"anything": [1, 2]}}, contract)
    assert outcome.valid


def test_null_is_not_accepted_for_string():
    node = Structured({"name": FieldSpec(Scalar("string"), required=True)})
    outcome = validate({"name": None}, node)
    assert outcome.messages == ["invalid type at name: expected string, got null"]


def test_numeric_strings_and_booleans_are_not_numbers():
    node = Structured({"a": FieldSpec(Scalar("number")), "b": FieldSpec(Scalar("number"))})
    outcome = validate({"a": "42", "b": True}, node)
    assert outcome.messages == [
        "invalid type at a: expected number, got string",
        "invalid type at b: expected number, got boolean",
    ]


def test_enum_with_non_string_value_is_a_type_violation():
    node = Structured({"op": FieldSpec(Enumerated(("read",)), required=True)})
    outcome = validate({"op": 1}, node)
    assert outcome.messages == ["invalid type at op: expected string, got number"]


def test_non_list_sequence_is_not_descended():
    node = Structured({"items": FieldSpec(Sequence(Scalar("number")), required=True)})
    outcome = validate({"items": {"0": "a", "1": "b"}}, node)
    assert outcome.messages == ["invalid type at items: expected array, got object"]
    assert outcome.violations[0].expected == "array of number"


def test_non_object_at_root():
    outcome = validate(["not", "an", "object"], ORDER)
    assert len(outcome.violations) == 1
    assert outcome.violations[0].path == "$"
    assert outcome.messages[0] == "invalid type at $: expected object, got array"


def test_violations_follow_declaration_order_depth_first():
    doc = copy.deepcopy(CONFORMING)
    doc["id"] = 1
    doc["customer"]["name"] = 2
    doc["customer"]["tier"] = "bronze"
    doc["lines"][0]["qty"] = "x"
    del doc["lines"][1]["sku"]
    doc["status"] = "pending"
    outcome = validate(doc, ORDER)
    assert [v.path for v in outcome.violations] == [
        "id", "status", "customer.name", "customer.tier", "lines[0].qty", "lines[1].sku",
    ]


def test_validate_is_idempotent_and_does_not_mutate():
    doc = copy.deepcopy(CONFORMING)
    doc["status"] = "pending"
    snapshot = copy.deepcopy(doc)
    first = validate(doc, ORDER)
    second = validate(doc, ORDER)
    assert first == second
    assert doc == snapshot


def test_validate_accepts_contract_objects(file_op_schema):
    contract = Contract("file_op", node_from_json_schema(file_op_schema))
    assert validate({"operation": "write", "path": "/tmp/a"}, contract).valid


def test_unparseable_text_yields_single_root_violation(file_op_schema):
    contract = node_from_json_schema(file_op_schema)
    outcome = validate_text("Sure! Here is the JSON you asked for", contract)
    assert not outcome.valid
    assert len(outcome.violations) == 1
    assert outcome.violations[0].path == "$"
    assert outcome.violations[0].message.startswith("invalid document:")


def test_validate_text_parses_and_validates(file_op_schema):
    contract = node_from_json_schema(file_op_schema)
    outcome = validate_text(json.dumps({"operation": "read", "path": "/etc/hosts"}), contract)
    assert outcome.valid
    assert outcome.value == {"operation": "read", "path": "/etc/hosts"}


def test_code_fence_is_stripped(file_op_schema):
    contract = node_from_json_schema(file_op_schema)
    text = '```json\n{"operation": "read", "path": "/x"}\n```'
    assert validate_text(text, contract).valid


def test_parse_document_rejects_non_text():
    doc, error = parse_document(None)
    assert doc is None
    assert error == "expected text, got null"


def test_json_type_names():
    assert json_type_name(True) == "boolean"
    assert json_type_name(1.5) == "number"
    assert json_type_name({}) == "object"
    assert json_type_name([]) == "array"


def test_deeply_nested_text_is_an_invalid_document(file_op_schema):
    contract = node_from_json_schema(file_op_schema)
    outcome = validate_text("[" * 100000 + "]" * 100000, contract)
    assert not outcome.valid
    assert len(outcome.violations) == 1
    assert outcome.violations[0].path == "$"
    assert outcome.violations[0].message.startswith("invalid document:")


def test_unterminated_deep_nesting_is_an_invalid_document():
    doc, error = parse_document("[" * 100000)
    assert doc is None
    assert error
