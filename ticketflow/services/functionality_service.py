"""Functionality Service - Ticket types and their workflow graphs"""
from typing import Any, Dict, List, Optional

from ..domain.models import Functionality, WorkflowGraphDocument
from ..domain.errors import WorkflowValidationError
from ..engine.graph import WorkflowGraph
from ..repositories.functionality_repo import FunctionalityRepository
from ..utils.idgen import generate_functionality_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


class FunctionalityService:
    """Service for functionality operations"""

    def __init__(self, repo: Optional[FunctionalityRepository] = None):
        self.repo = repo or FunctionalityRepository()

    def create_functionality(
        self,
        name: str,
        department: str,
        workflow: WorkflowGraphDocument,
        description: Optional[str] = None
    ) -> Functionality:
        """Create a functionality; the graph must pass validation"""
        WorkflowGraph(workflow)

        now = utc_now()
        functionality = Functionality(
            functionality_id=generate_functionality_id(),
            name=name,
            department=department,
            description=description,
            workflow=workflow,
            version=1,
            created_at=now,
            updated_at=now
        )
        return self.repo.create_functionality(functionality)

    def get_functionality(self, functionality_id: str) -> Functionality:
        return self.repo.get_functionality_or_raise(functionality_id)

    def list_functionalities(
        self,
        department: Optional[str] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 50
    ) -> List[Functionality]:
        return self.repo.list_functionalities(department=department, search=search, skip=skip, limit=limit)

    def replace_workflow(
        self,
        functionality_id: str,
        workflow: WorkflowGraphDocument,
        expected_version: Optional[int] = None
    ) -> Functionality:
        """Validate and store a new workflow graph"""
        WorkflowGraph(workflow)
        return self.repo.replace_workflow(functionality_id, workflow, expected_version)

    def validate_workflow(self, functionality_id: str) -> Dict[str, Any]:
        """
        Validate the stored graph of a functionality

        Returns {"is_valid", "errors", "first_node", "end_nodes"}.
        """
        functionality = self.repo.get_functionality_or_raise(functionality_id)
        try:
            graph = WorkflowGraph(functionality.workflow)
        except WorkflowValidationError as e:
            logger.warning(
                f"Stored workflow of {functionality_id} is invalid",
                extra={"functionality_id": functionality_id}
            )
            return {
                "is_valid": False,
                "errors": e.details.get("errors", [e.message]),
                "first_node": None,
                "end_nodes": []
            }

        return {
            "is_valid": True,
            "errors": [],
            "first_node": graph.first_employee_node.id,
            "end_nodes": [n.id for n in graph.end_nodes]
        }
