"""Error codes and exception types shared across the service.

Structural, authorization and execution failures travel as outcome values
(see ``schemas.ValidationOutcome`` and ``actions.ActionOutcome``). The
exceptions below are reserved for configuration mistakes and unreachable
collaborators, and are converted to structured errors before they reach the
caller of ``PipelineCoordinator.process``.
"""

from __future__ import annotations

from typing import Any, Optional

# Dispatcher codes
ACTION_NOT_FOUND = "ACTION_NOT_FOUND"
CONTEXT_MISSING = "CONTEXT_MISSING"
PERMISSION_DENIED = "PERMISSION_DENIED"
INVALID_PARAMETERS = "INVALID_PARAMETERS"
EXECUTION_ERROR = "EXECUTION_ERROR"

# Pipeline codes
CONTRACT_NOT_FOUND = "CONTRACT_NOT_FOUND"
DATA_SOURCE_NOT_FOUND = "DATA_SOURCE_NOT_FOUND"
DATA_SOURCE_ERROR = "DATA_SOURCE_ERROR"
PRODUCER_NOT_FOUND = "PRODUCER_NOT_FOUND"
PRODUCER_ERROR = "PRODUCER_ERROR"
REQUEST_TIMEOUT = "REQUEST_TIMEOUT"


class RNCPError(Exception):
    """Base class for every exception raised by rncp_service."""

    code: str = "RNCP_ERROR"

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class SchemaDefinitionError(RNCPError):
    """A contract definition is malformed (unknown type, cycle, missing items)."""

    code = "SCHEMA_DEFINITION_ERROR"


class ContractNotFoundError(RNCPError):
    code = CONTRACT_NOT_FOUND

    def __init__(self, contract_id: str):
        super().__init__(f"Contract {contract_id} not found")
        self.contract_id = contract_id


class DataSourceNotFoundError(RNCPError):
    code = DATA_SOURCE_NOT_FOUND

    def __init__(self, source_id: str):
        super().__init__(f"Data source {source_id} not found")
        self.source_id = source_id


class DataSourceError(RNCPError):
    """A registered data source could not be connected or described."""

    code = DATA_SOURCE_ERROR


class ProducerNotFoundError(RNCPError):
    code = PRODUCER_NOT_FOUND

    def __init__(self, producer_id: Optional[str]):
        if producer_id is None:
            msg = "No producer registered"
        else:
            msg = f"Producer {producer_id} not found"
        super().__init__(msg)
        self.producer_id = producer_id


class ProducerError(RNCPError):
    """The producer could not be reached or failed while answering."""

    code = PRODUCER_ERROR

    def __init__(self, message: str, attempt: int, details: Optional[Any] = None):
        super().__init__(message, details if details is not None else {"attempt": attempt})
        self.attempt = attempt
