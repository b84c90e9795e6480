"""
RNCP Instruction Service

Turns free-form generative-model output into a safely executable instruction:

- schemas.py: contract nodes (Scalar, Enumerated, Structured, Sequence)
- validator.py: pure structural validation, ordered violations
- regeneration.py: bounded re-ask loop that feeds violations back to the producer
- permissions.py: permission gate and predicate builders
- dispatcher.py: lookup -> context -> gate -> re-validate -> handler
- pipeline.py: context + producer + regeneration + dispatch in one cycle

Validation and authorization failures are returned as outcome values; only
configuration mistakes and unreachable collaborators raise (see errors.py).
"""

from .actions import ActionDefinition, ActionOutcome, ErrorInfo, ExecutionContext
from .context import ContextInjector, DataSource, StaticDataSource
from .dispatcher import ActionDispatcher
from .errors import (
    ContractNotFoundError,
    DataSourceError,
    DataSourceNotFoundError,
    ProducerError,
    ProducerNotFoundError,
    RNCPError,
    SchemaDefinitionError,
)
from .permissions import PermissionGate, all_of, allow_all, require_environment, require_permissions
from .pipeline import PipelineCoordinator, PipelineResult
from .producer import FakeProducer, LLMRequest, LLMResponse, OpenAIChatProducer, Producer, ProducerRegistry
from .regeneration import DEFAULT_MAX_ATTEMPTS, RegenerationLoop
from .registry import ActionRegistry, SchemaRegistry
from .schemas import (
    Contract,
    Enumerated,
    FieldSpec,
    Scalar,
    Sequence,
    Structured,
    ValidationOutcome,
    Violation,
    node_from_json_schema,
)
from .validator import validate, validate_text

__all__ = [
    "ActionDefinition", "ActionOutcome", "ErrorInfo", "ExecutionContext",
    "ContextInjector", "DataSource", "StaticDataSource",
    "ActionDispatcher",
    "ContractNotFoundError", "DataSourceError", "DataSourceNotFoundError", "ProducerError",
    "ProducerNotFoundError", "RNCPError", "SchemaDefinitionError",
    "PermissionGate", "all_of", "allow_all", "require_environment", "require_permissions",
    "PipelineCoordinator", "PipelineResult",
    "FakeProducer", "LLMRequest", "LLMResponse", "OpenAIChatProducer", "Producer", "ProducerRegistry",
    "DEFAULT_MAX_ATTEMPTS", "RegenerationLoop",
    "ActionRegistry", "SchemaRegistry",
    "Contract", "Enumerated", "FieldSpec", "Scalar", "Sequence", "Structured",
    "ValidationOutcome", "Violation", "node_from_json_schema",
    "validate", "validate_text",
]
