"""Employee Repository - Data access for the employee directory"""
from typing import Dict, Iterable, List, Optional
from pymongo.collection import Collection
from pymongo import ReturnDocument

from .mongo_client import get_collection
from ..domain.models import Employee
from ..utils.logger import get_logger

logger = get_logger(__name__)


class EmployeeRepository:
    """Repository for employee directory lookups"""

    def __init__(self):
        self._employees: Collection = get_collection("employees")

    def upsert_employee(self, employee: Employee) -> Employee:
        """Create or replace a directory entry"""
        doc = employee.model_dump()
        result = self._employees.find_one_and_update(
            {"employee_id": employee.employee_id},
            {"$set": doc},
            upsert=True,
            return_document=ReturnDocument.AFTER
        )
        result.pop("_id", None)
        logger.info(f"Upserted employee: {employee.employee_id}", extra={"user_id": employee.employee_id})
        return Employee.model_validate(result)

    def get_employee(self, employee_id: str) -> Optional[Employee]:
        """Get employee by ID"""
        doc = self._employees.find_one({"employee_id": employee_id})
        if doc:
            doc.pop("_id", None)
            return Employee.model_validate(doc)
        return None

    def get_employees(self, employee_ids: Iterable[str]) -> Dict[str, Employee]:
        """Bulk lookup keyed by employee_id; unknown ids are simply absent"""
        ids: List[str] = list(dict.fromkeys(employee_ids))
        if not ids:
            return {}

        found: Dict[str, Employee] = {}
        for doc in self._employees.find({"employee_id": {"$in": ids}}):
            doc.pop("_id", None)
            employee = Employee.model_validate(doc)
            found[employee.employee_id] = employee
        return found
