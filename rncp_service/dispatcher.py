"""
Action dispatcher.

dispatch() runs a fixed sequence and stops at the first failing step:

1. look up the action                -> ACTION_NOT_FOUND
2. resolve the execution context     -> CONTEXT_MISSING
3. permission gate                   -> PERMISSION_DENIED
4. re-validate params against the action's input contract
                                     -> INVALID_PARAMETERS (violations in details)
5. invoke the handler exactly once   -> EXECUTION_ERROR on any exception

Nothing raised by a handler escapes dispatch(); cancellation is the only
exception that propagates. Retries do not happen at this layer.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Optional, Tuple

from . import errors
from .actions import ActionDefinition, ActionOutcome, ExecutionContext
from .metrics import actions_dispatched_total
from .permissions import PermissionGate
from .registry import ActionRegistry
from .validator import validate

logger = logging.getLogger(__name__)

ContextSupplier = Callable[[], ExecutionContext]


class ActionDispatcher:
    def __init__(
        self,
        registry: Optional[ActionRegistry] = None,
        gate: Optional[PermissionGate] = None,
        context_supplier: Optional[ContextSupplier] = None,
    ):
        self.registry = registry if registry is not None else ActionRegistry()
        self.gate = gate or PermissionGate()
        self._context_supplier = context_supplier

    # --- registration surface ---

    def register_action(self, action: ActionDefinition) -> Optional[ActionDefinition]:
        """Register ``action``; an existing action with the same identifier is replaced."""
        return self.registry.add(action)

    def unregister_action(self, identifier: str) -> bool:
        return self.registry.unregister(identifier)

    def set_context_supplier(self, supplier: Optional[ContextSupplier]) -> None:
        self._context_supplier = supplier

    # --- dispatch surface ---

    async def dispatch(
        self,
        identifier: str,
        params: Any,
        context: Optional[ExecutionContext] = None,
    ) -> ActionOutcome:
        outcome = await self._dispatch(identifier, params, context)
        code = "OK" if outcome.success else outcome.error.code
        actions_dispatched_total.labels(code=code).inc()
        return outcome

    async def _dispatch(self, identifier: str, params: Any, context: Optional[ExecutionContext]) -> ActionOutcome:
        action = self.registry.lookup(identifier)
        if action is None:
            logger.warning("dispatch of unknown action %s", identifier)
            return ActionOutcome.fail(errors.ACTION_NOT_FOUND, f"Action {identifier} not found")

        ctx, failure = self._resolve_context(context)
        if failure is not None:
            return failure

        if not self.gate.authorize(action, ctx):
            return ActionOutcome.fail(
                errors.PERMISSION_DENIED,
                "Insufficient permissions to execute this action",
                {"action": identifier, "actor_id": ctx.actor_id},
            )

        result = validate(params, action.input_schema)
        if not result.valid:
            logger.info("action %s rejected %d invalid parameter(s)", identifier, len(result.violations))
            return ActionOutcome.fail(
                errors.INVALID_PARAMETERS,
                "Invalid parameters for action execution",
                [v.to_dict() for v in result.violations],
            )

        try:
            returned = action.handler(params, ctx)
            if inspect.isawaitable(returned):
                returned = await returned
        except Exception as exc:
            logger.exception("action %s failed (request=%s)", identifier, ctx.request_id)
            return ActionOutcome.fail(
                errors.EXECUTION_ERROR,
                str(exc) or "Unknown error during action execution",
                {"type": type(exc).__name__},
            )

        if isinstance(returned, ActionOutcome):
            return returned
        logger.debug("action %s succeeded (request=%s)", identifier, ctx.request_id)
        return ActionOutcome.ok(returned)

    def _resolve_context(
        self, context: Optional[ExecutionContext]
    ) -> Tuple[Optional[ExecutionContext], Optional[ActionOutcome]]:
        if context is not None:
            if not isinstance(context, ExecutionContext):
                logger.warning("dispatch called with %s instead of an execution context", type(context).__name__)
                return None, ActionOutcome.fail(
                    errors.CONTEXT_MISSING, "Execution context is required but was not provided"
                )
            return context, None
        if self._context_supplier is None:
            return None, ActionOutcome.fail(
                errors.CONTEXT_MISSING, "Execution context is required but was not provided"
            )
        try:
            supplied = self._context_supplier()
        except Exception as exc:
            logger.exception("execution context supplier failed")
            return None, ActionOutcome.fail(
                errors.CONTEXT_MISSING, f"Execution context supplier failed: {exc}"
            )
        if not isinstance(supplied, ExecutionContext):
            return None, ActionOutcome.fail(
                errors.CONTEXT_MISSING, "Execution context is required but was not provided"
            )
        return supplied, None
