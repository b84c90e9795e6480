import logging

import pytest

from rncp_service.actions import ActionDefinition, ActionOutcome, ExecutionContext
from rncp_service.permissions import (
    PermissionGate, all_of, allow_all, require_environment, require_permissions,
)
from rncp_service.schemas import Structured


def _action(predicate):
    return ActionDefinition(
        identifier="probe",
        input_schema=Structured(()),
        permission=predicate,
        handler=lambda params, ctx: ActionOutcome.ok(),
    )


def test_require_permissions(make_context):
    pred = require_permissions("email:send", "email:read")
    assert pred(make_context("email:send", "email:read", "other")) is True
    assert pred(make_context("email:send")) is False
    assert pred(make_context()) is False


def test_require_environment(make_context):
    pred = require_environment("production")
    assert pred(make_context(environment="production")) is True
    assert pred(make_context(environment="testing")) is False


def test_all_of(make_context):
    pred = all_of(require_permissions("deploy"), require_environment("production"))
    assert pred(make_context("deploy", environment="production")) is True
    assert pred(make_context("deploy", environment="development")) is False
    assert pred(make_context(environment="production")) is False


def test_allow_all(make_context):
    assert allow_all(make_context()) is True


def test_gate_allows_only_exact_true(make_context):
    gate = PermissionGate()
    ctx = make_context()
    assert gate.authorize(_action(lambda c: True), ctx) is True
    # truthy but not True fails closed
    assert gate.authorize(_action(lambda c: 1), ctx) is False
    assert gate.authorize(_action(lambda c: "yes"), ctx) is False
    assert gate.authorize(_action(lambda c: None), ctx) is False


def test_gate_denies_when_predicate_raises(make_context, caplog):
    def broken(ctx):
        raise RuntimeError("directory unavailable")

    with caplog.at_level(logging.ERROR, logger="rncp_service.permissions"):
        assert PermissionGate().authorize(_action(broken), make_context()) is False
    assert any("raised" in r.getMessage() for r in caplog.records)


def test_gate_evaluates_predicate_every_time(make_context):
    calls = []

    def counting(ctx):
        calls.append(ctx.request_id)
        return True

    gate = PermissionGate()
    action = _action(counting)
    gate.authorize(action, make_context(request_id="a"))
    gate.authorize(action, make_context(request_id="b"))
    assert calls == ["a", "b"]


def test_context_rejects_unknown_environment():
    with pytest.raises(ValueError):
        ExecutionContext(actor_id="u", environment="staging")


def test_context_is_read_only(make_context):
    ctx = make_context("a")
    with pytest.raises(Exception):
        ctx.actor_id = "someone-else"
    assert isinstance(ctx.permissions, frozenset)


def test_gate_denies_raising_predicate_for_malformed_context():
    def broken(ctx):
        return "send_email" in ctx.permissions

    assert PermissionGate().authorize(_action(broken), {"permissions": ["read"]}) is False
