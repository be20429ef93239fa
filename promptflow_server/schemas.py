"""Pydantic request/response models for the promptflow API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field


class ExecuteWorkflowRequest(BaseModel):
    """Initial variables for a run."""
    input_data: Dict[str, Any] = Field(default_factory=dict)


class ExecuteWorkflowResponse(BaseModel):
    execution_id: str
    status: str
    message: str = "Workflow execution started"


class ExecutionStatusResponse(BaseModel):
    id: str
    workflow_id: str
    status: str
    input_data: Optional[Dict[str, Any]] = None
    output_data: Optional[Dict[str, Any]] = None
    node_results: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ImportWorkflowRequest(BaseModel):
    """Export document as a JSON string or an object."""
    workflow_data: Union[str, Dict[str, Any]]


class WorkflowResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    nodes: List[Dict[str, Any]] = Field(default_factory=list)
    edges: List[Dict[str, Any]] = Field(default_factory=list)
    settings: Optional[Dict[str, Any]] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class GraphRequest(BaseModel):
    nodes: List[Dict[str, Any]] = Field(default_factory=list)
    edges: List[Dict[str, Any]] = Field(default_factory=list)
