"""Workflow export/import file format.

An export file is pretty-printed JSON:

    {"name", "description", "nodes", "edges", "settings", "created_at", "updated_at"}

``nodes`` and ``edges`` use the same structures the engine consumes. An
import must carry ``name``, ``nodes`` and ``edges``.
"""

from __future__ import annotations

import json
import re
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from .engine.graph import WorkflowGraph

INVALID_WORKFLOW_DATA = "Invalid workflow data"


class InvalidWorkflowImport(ValueError):
    """Raised when import data is missing required fields or malformed."""

    def __init__(self, message: str = INVALID_WORKFLOW_DATA, details: Optional[List[str]] = None):
        super().__init__(message)
        self.details = details or []


class WorkflowExport(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    nodes: List[Dict[str, Any]]
    edges: List[Dict[str, Any]]
    settings: Optional[Dict[str, Any]] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("name cannot be blank")
        return v

    def to_graph(self) -> WorkflowGraph:
        return WorkflowGraph.from_parts(self.nodes, self.edges)


def _timestamp(value: Union[datetime, str, None]) -> Optional[str]:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def export_workflow(
    name: str,
    nodes: List[Dict[str, Any]],
    edges: List[Dict[str, Any]],
    description: Optional[str] = None,
    settings: Optional[Dict[str, Any]] = None,
    created_at: Union[datetime, str, None] = None,
    updated_at: Union[datetime, str, None] = None,
) -> Dict[str, Any]:
    """Build the export document for a stored workflow."""
    return WorkflowExport(
        name=name,
        description=description,
        nodes=nodes or [],
        edges=edges or [],
        settings=settings,
        created_at=_timestamp(created_at),
        updated_at=_timestamp(updated_at),
    ).model_dump()


def dumps_export(document: Mapping[str, Any]) -> str:
    return json.dumps(document, indent=4, ensure_ascii=False)


def export_filename(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-") or "workflow"
    return f"{slug}-export.json"


def parse_import(raw: Union[str, bytes, Mapping[str, Any]]) -> WorkflowExport:
    """Parse and validate an export document.

    Raises:
        InvalidWorkflowImport: On malformed JSON, missing name/nodes/edges or
            nodes/edges that do not form a valid graph
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise InvalidWorkflowImport(details=[f"Malformed JSON: {e.msg}"]) from e

    if not isinstance(raw, Mapping):
        raise InvalidWorkflowImport(details=["Export document must be a JSON object"])

    missing = [key for key in ("name", "nodes", "edges") if key not in raw]
    if missing:
        raise InvalidWorkflowImport(details=[f"Missing field: {key}" for key in missing])

    try:
        document = WorkflowExport.model_validate(dict(raw))
        document.to_graph()
    except ValidationError as e:
        raise InvalidWorkflowImport(
            details=[f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        ) from e
    except ValueError as e:
        raise InvalidWorkflowImport(details=[str(e)]) from e
    return document
