from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from .actions import ExecutionContext
from .pipeline import PipelineCoordinator
from .schemas import node_to_json_schema

router = APIRouter()

# The coordinator is created by the application and bound here.
_bound_coordinator: Optional[PipelineCoordinator] = None


def bind_coordinator(c: PipelineCoordinator):
    global _bound_coordinator
    _bound_coordinator = c


def _coordinator() -> PipelineCoordinator:
    if _bound_coordinator is None:
        raise HTTPException(status_code=500, detail="coordinator not bound")
    return _bound_coordinator


class ContextBody(BaseModel):
    actor_id: str
    permissions: List[str] = Field(default_factory=list)
    environment: Literal["development", "testing", "production"] = "development"
    request_id: Optional[str] = None

    def to_context(self) -> ExecutionContext:
        if self.request_id:
            return ExecutionContext(self.actor_id, frozenset(self.permissions), self.environment, self.request_id)
        return ExecutionContext(self.actor_id, frozenset(self.permissions), self.environment)


class DispatchBody(BaseModel):
    params: Any = None
    context: Optional[ContextBody] = None


class ProcessBody(BaseModel):
    query: str
    contract_id: str
    source_ids: List[str] = Field(default_factory=list)
    action_id: Optional[str] = None
    producer_id: Optional[str] = None
    max_attempts: Optional[int] = Field(None, ge=1)
    temperature: Optional[float] = None
    context: Optional[ContextBody] = None


@router.get("/contracts")
async def list_contracts() -> Dict[str, Any]:
    coord = _coordinator()
    items = [
        {"id": cid, "description": c.description, "schema": node_to_json_schema(c.root)}
        for cid, c in coord.schemas.snapshot().items()
    ]
    return {"count": len(items), "items": items}


@router.get("/actions")
async def list_actions() -> Dict[str, Any]:
    coord = _coordinator()
    items = [
        {
            "id": a.identifier,
            "name": a.name,
            "description": a.description,
            "input_schema": node_to_json_schema(a.input_schema),
        }
        for a in coord.dispatcher.registry.snapshot().values()
    ]
    return {"count": len(items), "items": items}


@router.post("/actions/{action_id}/dispatch")
async def dispatch_action(action_id: str, body: DispatchBody) -> Dict[str, Any]:
    coord = _coordinator()
    context = body.context.to_context() if body.context is not None else None
    outcome = await coord.dispatcher.dispatch(action_id, body.params, context)
    return outcome.to_dict()


@router.post("/process")
async def process(body: ProcessBody) -> Dict[str, Any]:
    coord = _coordinator()
    result = await coord.process(
        body.query,
        body.contract_id,
        source_ids=body.source_ids,
        action_id=body.action_id,
        execution_context=body.context.to_context() if body.context is not None else None,
        producer_id=body.producer_id,
        max_attempts=body.max_attempts,
        temperature=body.temperature,
    )
    return result.to_dict()
