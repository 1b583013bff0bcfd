"""Employee Directory Routes"""
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException
from pydantic import EmailStr

from ..deps import get_directory_service
from ...domain.models import CamelModel, Employee
from ...domain.errors import DomainError
from ...services.directory_service import DirectoryService

router = APIRouter()


class UpsertEmployeeRequest(CamelModel):
    """Directory entry fields; the id comes from the path"""
    name: Optional[str] = None
    username: Optional[str] = None
    email: Optional[EmailStr] = None
    department: Optional[str] = None


@router.put("/{employee_id}")
async def upsert_employee(
    employee_id: str,
    request: UpsertEmployeeRequest,
    service: DirectoryService = Depends(get_directory_service)
):
    """Create or update an employee"""
    employee = service.upsert_employee(
        Employee(employee_id=employee_id, **request.model_dump())
    )
    return employee.model_dump(mode="json", by_alias=True)


@router.get("/{employee_id}")
async def get_employee(
    employee_id: str,
    service: DirectoryService = Depends(get_directory_service)
):
    """Get an employee"""
    try:
        return service.get_employee_or_raise(employee_id).model_dump(mode="json", by_alias=True)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())
