from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Tuple

from . import errors
from .actions import ActionDefinition, ActionOutcome, ErrorInfo, ExecutionContext
from .config import Settings, get_settings
from .context import ContextInjector, DataSource
from .dispatcher import ActionDispatcher, ContextSupplier
from .errors import RNCPError
from .metrics import pipeline_requests_total
from .producer import LLMRequest, LLMResponse, Producer, ProducerRegistry
from .regeneration import RegenerationLoop
from .registry import SchemaRegistry
from .schemas import Contract, ValidationOutcome

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    response: Optional[LLMResponse] = None
    outcome: Optional[ValidationOutcome] = None
    action_outcome: Optional[ActionOutcome] = None
    error: Optional[ErrorInfo] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.outcome is not None and self.outcome.valid

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "response": self.response.model_dump() if self.response is not None else None,
            "outcome": self.outcome.to_dict() if self.outcome is not None else None,
        }
        if self.action_outcome is not None:
            d["action_outcome"] = self.action_outcome.to_dict()
        if self.error is not None:
            d["error"] = self.error.to_dict()
        return d


class PipelineCoordinator:
    """One request/response cycle: context -> producer -> regeneration loop -> dispatch.

    The coordinator owns one registry of each kind; all of them may be
    replaced at construction time for tests.
    """

    def __init__(
        self,
        context_injector: Optional[ContextInjector] = None,
        producers: Optional[ProducerRegistry] = None,
        schemas: Optional[SchemaRegistry] = None,
        dispatcher: Optional[ActionDispatcher] = None,
        settings: Optional[Settings] = None,
    ):
        self.context_injector = context_injector or ContextInjector()
        self.producers = producers or ProducerRegistry()
        self.schemas = schemas or SchemaRegistry()
        self.dispatcher = dispatcher or ActionDispatcher()
        self.settings = settings or get_settings()

    # --- registration surface ---

    def register_contract(self, contract_id: str, schema, description: Optional[str] = None) -> Contract:
        return self.schemas.register(contract_id, schema, description)

    def unregister_contract(self, contract_id: str) -> bool:
        return self.schemas.unregister(contract_id)

    def register_action(self, action: ActionDefinition):
        return self.dispatcher.register_action(action)

    def unregister_action(self, identifier: str) -> bool:
        return self.dispatcher.unregister_action(identifier)

    def register_producer(self, producer: Producer, producer_id: Optional[str] = None):
        return self.producers.register(producer, producer_id)

    def unregister_producer(self, producer_id: str) -> bool:
        return self.producers.unregister(producer_id)

    def set_default_producer(self, producer_id: str) -> None:
        self.producers.set_default(producer_id)

    def register_data_source(self, source: DataSource):
        return self.context_injector.register_data_source(source)

    def unregister_data_source(self, source_id: str) -> bool:
        return self.context_injector.unregister_data_source(source_id)

    def set_context_supplier(self, supplier: Optional[ContextSupplier]) -> None:
        self.dispatcher.set_context_supplier(supplier)

    # --- request cycle ---

    async def process(
        self,
        user_query: str,
        contract_id: str,
        source_ids: Iterable[str] = (),
        action_id: Optional[str] = None,
        execution_context: Optional[ExecutionContext] = None,
        producer_id: Optional[str] = None,
        max_attempts: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> PipelineResult:
        """Run the full cycle for ``user_query``.

        Configuration mistakes, producer failures and timeouts come back as
        ``PipelineResult.error``; no action is dispatched in those cases or
        when the document never validates.
        """
        attempts = max_attempts if max_attempts is not None else self.settings.RNCP_MAX_ATTEMPTS
        if attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        timeout = self.settings.RNCP_REQUEST_TIMEOUT_SECONDS or None

        try:
            response, outcome = await asyncio.wait_for(
                self._produce(user_query, contract_id, list(source_ids or ()), producer_id, attempts, temperature),
                timeout=timeout,
            )
        except RNCPError as exc:
            logger.error("request for contract %s failed: %s %s", contract_id, exc.code, exc.message)
            pipeline_requests_total.labels(result=exc.code).inc()
            return PipelineResult(error=ErrorInfo(exc.code, exc.message, exc.details))
        except asyncio.TimeoutError:
            logger.error("request for contract %s timed out after %ss", contract_id, timeout)
            pipeline_requests_total.labels(result=errors.REQUEST_TIMEOUT).inc()
            return PipelineResult(error=ErrorInfo(
                errors.REQUEST_TIMEOUT, f"Request exceeded {timeout}s before a valid document was produced"
            ))

        result = PipelineResult(response=response, outcome=outcome)
        if not outcome.valid:
            pipeline_requests_total.labels(result="invalid").inc()
            return result

        if action_id is not None:
            result.action_outcome = await self.dispatcher.dispatch(action_id, outcome.value, execution_context)
        pipeline_requests_total.labels(result="ok").inc()
        return result

    async def _produce(
        self,
        user_query: str,
        contract_id: str,
        source_ids,
        producer_id: Optional[str],
        attempts: int,
        temperature: Optional[float],
    ) -> Tuple[LLMResponse, ValidationOutcome]:
        contract = self.schemas.get(contract_id)
        producer = self.producers.get(producer_id)
        preamble = await self.context_injector.build_context(source_ids, user_query)
        request = LLMRequest(
            prompt=user_query,
            system_prompt=preamble,
            temperature=self.settings.RNCP_DEFAULT_TEMPERATURE if temperature is None else temperature,
            format="json",
        )
        loop = RegenerationLoop(producer, attempts)
        return await loop.resolve(request, contract)
