"""Directory Service - Resolves employee ids to credited identities"""
from typing import Dict, Iterable, List, Optional

from ..domain.models import Credit, Employee
from ..domain.errors import EmployeeNotFoundError
from ..repositories.employee_repo import EmployeeRepository
from ..utils.logger import get_logger

logger = get_logger(__name__)


class DirectoryService:
    """Service for employee directory lookups"""

    def __init__(self, employee_repo: Optional[EmployeeRepository] = None):
        self.employee_repo = employee_repo or EmployeeRepository()

    def upsert_employee(self, employee: Employee) -> Employee:
        return self.employee_repo.upsert_employee(employee)

    def get_employee(self, employee_id: str) -> Optional[Employee]:
        return self.employee_repo.get_employee(employee_id)

    def get_employee_or_raise(self, employee_id: str) -> Employee:
        employee = self.employee_repo.get_employee(employee_id)
        if not employee:
            raise EmployeeNotFoundError(
                f"Employee {employee_id} not found",
                details={"missing": [employee_id]}
            )
        return employee

    def resolve(self, employee_ids: Iterable[str]) -> Dict[str, Credit]:
        """
        Credits for the ids found in the directory

        Unknown ids are skipped and logged.
        """
        ids = [i for i in dict.fromkeys(employee_ids) if i]
        employees = self.employee_repo.get_employees(ids)

        missing = [i for i in ids if i not in employees]
        if missing:
            logger.warning(f"Employees not found in directory: {missing}")

        return {i: employees[i].as_credit() for i in ids if i in employees}

    def require_all(self, employee_ids: Iterable[str]) -> List[Credit]:
        """
        Credits for every id, in the order given

        Raises:
            EmployeeNotFoundError: one or more ids are not in the directory
        """
        ids = [i for i in dict.fromkeys(employee_ids) if i]
        employees = self.employee_repo.get_employees(ids)

        missing = [i for i in ids if i not in employees]
        if missing:
            raise EmployeeNotFoundError(
                f"Employees not found: {', '.join(missing)}",
                details={"missing": missing}
            )

        return [employees[i].as_credit() for i in ids]

    def emails_for(self, employee_ids: Iterable[str]) -> List[str]:
        """Email addresses of the given employees that have one on file"""
        employees = self.employee_repo.get_employees(employee_ids)
        emails = []
        for employee in employees.values():
            if employee.email:
                emails.append(str(employee.email))
            else:
                logger.debug(f"No email on file for employee {employee.employee_id}")
        return list(dict.fromkeys(emails))
