"""Workflow export, import and validation endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from promptflow.engine.graph import WorkflowGraph
from promptflow.engine.validation import validate_graph
from promptflow.serialization import (
    InvalidWorkflowImport,
    dumps_export,
    export_filename,
    export_workflow,
    parse_import,
)

from promptflow_server.database import get_session
from promptflow_server.repositories.workflow import WorkflowRepository
from promptflow_server.schemas import GraphRequest, ImportWorkflowRequest, WorkflowResponse
from promptflow_server.routes.deps import get_current_user_id

router = APIRouter(prefix="/api/workflows", tags=["workflows"])


async def get_owned_workflow(workflow_id: str, user_id: str, session: AsyncSession):
    workflow = await WorkflowRepository(session).get(workflow_id)
    if not workflow:
        raise HTTPException(status_code=404, detail="Workflow not found")
    if workflow.user_id != user_id:
        raise HTTPException(status_code=403, detail="Unauthorized")
    return workflow


@router.get("/{workflow_id}/export")
async def export_workflow_file(
    workflow_id: str,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    """Download a workflow as a pretty-printed JSON file."""
    workflow = await get_owned_workflow(workflow_id, user_id, session)
    document = export_workflow(
        name=workflow.name,
        description=workflow.description,
        nodes=workflow.nodes,
        edges=workflow.edges,
        settings=workflow.settings,
        created_at=workflow.created_at,
        updated_at=workflow.updated_at,
    )
    return Response(
        content=dumps_export(document),
        media_type="application/json",
        headers={
            "Content-Disposition": f'attachment; filename="{export_filename(workflow.name)}"'
        },
    )


@router.post("/import", response_model=WorkflowResponse, status_code=201)
async def import_workflow_file(
    payload: ImportWorkflowRequest,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    """Create a workflow from an export document."""
    try:
        document = parse_import(payload.workflow_data)
    except InvalidWorkflowImport as e:
        raise HTTPException(
            status_code=422,
            detail={"message": str(e), "errors": e.details},
        ) from e

    workflow = await WorkflowRepository(session).create(
        user_id=user_id,
        name=document.name,
        description=document.description,
        nodes=document.nodes,
        edges=document.edges,
        settings=document.settings,
    )
    return WorkflowResponse.model_validate(workflow)


@router.post("/validate")
async def validate_workflow_graph(payload: GraphRequest):
    """Report authoring problems in a graph without running it."""
    try:
        graph = WorkflowGraph.from_parts(payload.nodes, payload.edges)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    return validate_graph(graph).to_dict()
