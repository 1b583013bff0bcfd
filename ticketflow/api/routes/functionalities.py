"""Functionality API Routes"""
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import Field

from ..deps import get_correlation_id_dep, get_functionality_service
from ...domain.models import CamelModel, WorkflowGraphDocument
from ...domain.errors import DomainError
from ...services.functionality_service import FunctionalityService
from ...utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()


class CreateFunctionalityRequest(CamelModel):
    """Request to create a functionality"""
    name: str = Field(..., min_length=1, max_length=200)
    department: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    workflow: WorkflowGraphDocument


class ReplaceWorkflowRequest(CamelModel):
    """Request to replace a functionality's workflow graph"""
    workflow: WorkflowGraphDocument
    expected_version: Optional[int] = None


def _dump(functionality) -> dict:
    return functionality.model_dump(mode="json", by_alias=True)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_functionality(
    request: CreateFunctionalityRequest,
    correlation_id: str = Depends(get_correlation_id_dep),
    service: FunctionalityService = Depends(get_functionality_service)
):
    """Create a functionality; the workflow graph is validated first"""
    try:
        functionality = service.create_functionality(
            name=request.name,
            department=request.department,
            workflow=request.workflow,
            description=request.description
        )
        logger.info(
            f"Created functionality: {functionality.functionality_id}",
            extra={"functionality_id": functionality.functionality_id}
        )
        return _dump(functionality)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("")
async def list_functionalities(
    department: Optional[str] = Query(None),
    q: Optional[str] = Query(None, description="Search by name"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200, alias="pageSize"),
    service: FunctionalityService = Depends(get_functionality_service)
):
    """List functionalities"""
    items = service.list_functionalities(
        department=department,
        search=q,
        skip=(page - 1) * page_size,
        limit=page_size
    )
    return {"items": [_dump(f) for f in items], "page": page, "pageSize": page_size}


@router.get("/{functionality_id}")
async def get_functionality(
    functionality_id: str,
    service: FunctionalityService = Depends(get_functionality_service)
):
    """Get a functionality with its workflow graph"""
    try:
        return _dump(service.get_functionality(functionality_id))
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.put("/{functionality_id}/workflow")
async def replace_workflow(
    functionality_id: str,
    request: ReplaceWorkflowRequest,
    correlation_id: str = Depends(get_correlation_id_dep),
    service: FunctionalityService = Depends(get_functionality_service)
):
    """
    Replace the workflow graph

    Tickets already in flight keep their workflowStage; it must still exist
    in the new graph for further actions to succeed.
    """
    try:
        functionality = service.replace_workflow(
            functionality_id, request.workflow, request.expected_version
        )
        return _dump(functionality)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("/{functionality_id}/validate")
async def validate_workflow(
    functionality_id: str,
    service: FunctionalityService = Depends(get_functionality_service)
):
    """Validate the stored workflow graph"""
    try:
        result = service.validate_workflow(functionality_id)
        return {
            "isValid": result["is_valid"],
            "errors": result["errors"],
            "firstNode": result["first_node"],
            "endNodes": result["end_nodes"]
        }
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())
