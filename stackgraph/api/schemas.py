"""Pydantic response models for the stackgraph REST API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    error: str
    detail: str


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str
    provider: str = ""
    nodes: int = 0
    materialized: int = 0


class NodeStatus(BaseModel):
    """One declared node with whatever the state store knows about it."""

    ref: str
    kind: str
    name: str
    depends_on: list[str] = Field(default_factory=list)
    materialized: bool = False
    resource_id: str | None = None
    provisioning_state: str | None = None
    last_attempt: str | None = None
    last_error: str | None = None


class GraphResponse(BaseModel):
    order: list[str]
    edges: int
    nodes: list[NodeStatus]


class OutputsResponse(BaseModel):
    outputs: dict[str, Any]
    secrets: list[str] = Field(default_factory=list)
