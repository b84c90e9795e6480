import os
import sys

import pytest

# Ensure repository root is on sys.path for package imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from rncp_service.actions import ExecutionContext
from rncp_service.config import Settings


# Contract used across the suite: a file operation request
FILE_OP_SCHEMA = {
    "type": "object",
    "properties": {
        "operation": {"type": "string", "enum": ["read", "write"]},
        "path": {"type": "string"},
    },
    "required": ["operation", "path"],
}


@pytest.fixture
def file_op_schema():
    return FILE_OP_SCHEMA


@pytest.fixture
def make_context():
    def _make(*permissions, environment="testing", actor_id="user-1", request_id="req-1"):
        return ExecutionContext(
            actor_id=actor_id,
            permissions=frozenset(permissions),
            environment=environment,
            request_id=request_id,
        )
    return _make


@pytest.fixture
def settings():
    return Settings(RNCP_MAX_ATTEMPTS=3, RNCP_REQUEST_TIMEOUT_SECONDS=5, RNCP_DEFAULT_TEMPERATURE=0.0)
