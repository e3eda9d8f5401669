"""Pydantic response models for the file proxy API.

WHY: The proxy's few JSON endpoints get typed schemas so FastAPI can
validate responses and document them under /docs.

RULES:
- Error bodies use FastAPI's default {"detail": ...} shape
- Python 3.9+ compatible (no PEP 604 unions, use Optional from typing)
"""

from __future__ import annotations

from typing import Any, Dict, List

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Error body returned by every non-2xx proxy response."""

    detail: str = Field(description="Human-readable error message.")


class HealthResponse(BaseModel):
    """Liveness check payload."""

    status: str = Field(description="Always 'ok' when the server is up.")
    version: str = Field(description="Package version.")
    live_tokens: int = Field(description="Number of proxy tokens not yet consumed.")


class WorkflowButtonResponse(BaseModel):
    """Block Kit payload for a Workflow Builder step that offers channel access."""

    blocks: List[Dict[str, Any]] = Field(
        description="Block Kit blocks containing the join-channel button.",
    )
