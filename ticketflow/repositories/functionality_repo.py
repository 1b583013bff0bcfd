"""Functionality Repository - Data access for ticket types and their workflow graphs"""
import re
from typing import Any, Dict, List, Optional
from pymongo.collection import Collection
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from .mongo_client import get_collection
from ..domain.models import Functionality, WorkflowGraphDocument
from ..domain.errors import AlreadyExistsError, ConcurrencyError, FunctionalityNotFoundError
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


class FunctionalityRepository:
    """Repository for functionality operations"""

    def __init__(self):
        self._functionalities: Collection = get_collection("functionalities")

    def create_functionality(self, functionality: Functionality) -> Functionality:
        """Create a new functionality"""
        doc = functionality.model_dump()
        doc["_id"] = functionality.functionality_id

        try:
            self._functionalities.insert_one(doc)
        except DuplicateKeyError:
            raise AlreadyExistsError(
                f"Functionality {functionality.functionality_id} already exists",
                details={"functionality_id": functionality.functionality_id}
            )

        logger.info(
            f"Created functionality: {functionality.name}",
            extra={"functionality_id": functionality.functionality_id}
        )
        return functionality

    def get_functionality(self, functionality_id: str) -> Optional[Functionality]:
        """Get functionality by ID"""
        doc = self._functionalities.find_one({"functionality_id": functionality_id})
        if doc:
            doc.pop("_id", None)
            return Functionality.model_validate(doc)
        return None

    def get_functionality_or_raise(self, functionality_id: str) -> Functionality:
        """Get functionality by ID or raise error"""
        functionality = self.get_functionality(functionality_id)
        if not functionality:
            raise FunctionalityNotFoundError(
                f"Functionality {functionality_id} not found",
                details={"functionality_id": functionality_id}
            )
        return functionality

    def list_functionalities(
        self,
        department: Optional[str] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 50
    ) -> List[Functionality]:
        """List functionalities, optionally filtered by department or name"""
        query: Dict[str, Any] = {}
        if department:
            query["department"] = department
        if search:
            query["name"] = {"$regex": re.escape(search), "$options": "i"}

        cursor = self._functionalities.find(query).sort("name", ASCENDING).skip(skip).limit(limit)
        results = []
        for doc in cursor:
            doc.pop("_id", None)
            results.append(Functionality.model_validate(doc))
        return results

    def replace_workflow(
        self,
        functionality_id: str,
        workflow: WorkflowGraphDocument,
        expected_version: Optional[int] = None
    ) -> Functionality:
        """Replace the workflow graph and bump the functionality version"""
        query: Dict[str, Any] = {"functionality_id": functionality_id}
        if expected_version is not None:
            query["version"] = expected_version

        result = self._functionalities.find_one_and_update(
            query,
            {
                "$set": {"workflow": workflow.model_dump(), "updated_at": utc_now()},
                "$inc": {"version": 1}
            },
            return_document=ReturnDocument.AFTER
        )

        if result is None:
            if expected_version is not None and self.get_functionality(functionality_id):
                raise ConcurrencyError(
                    f"Functionality {functionality_id} was modified. Please refresh and try again.",
                    details={"expected_version": expected_version}
                )
            raise FunctionalityNotFoundError(
                f"Functionality {functionality_id} not found",
                details={"functionality_id": functionality_id}
            )

        result.pop("_id", None)
        logger.info(
            f"Replaced workflow of functionality {functionality_id} (version {result['version']})",
            extra={"functionality_id": functionality_id}
        )
        return Functionality.model_validate(result)
