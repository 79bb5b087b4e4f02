"""Workflow Repository - Data access for versioned workflow definitions"""
from typing import List, Optional
from pymongo.collection import Collection
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from .base import WorkflowDefinitionStore
from .mongo_client import get_collection, WORKFLOW_DEFINITIONS
from ..domain.models import WorkflowDefinition
from ..domain.errors import WorkflowNotFoundError, AlreadyExistsError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class MongoWorkflowRepository(WorkflowDefinitionStore):
    """Repository for workflow definitions (one document per version)"""

    def __init__(self, collection: Optional[Collection] = None):
        self._definitions: Collection = (
            collection if collection is not None else get_collection(WORKFLOW_DEFINITIONS)
        )

    def _to_model(self, doc) -> WorkflowDefinition:
        doc.pop("_id", None)
        return WorkflowDefinition.model_validate(doc)

    def find(self, name: str, version: int) -> Optional[WorkflowDefinition]:
        doc = self._definitions.find_one({"name": name, "version": version})
        if doc:
            return self._to_model(doc)
        return None

    def find_active(self, name: str) -> Optional[WorkflowDefinition]:
        doc = self._definitions.find_one(
            {"name": name, "active": True},
            sort=[("version", -1)]
        )
        if doc:
            return self._to_model(doc)
        return None

    def list_versions(self, name: str) -> List[WorkflowDefinition]:
        cursor = self._definitions.find({"name": name}).sort("version", ASCENDING)
        return [self._to_model(doc) for doc in cursor]

    def list_active(self) -> List[WorkflowDefinition]:
        cursor = self._definitions.find({"active": True}).sort("name", ASCENDING)
        return [self._to_model(doc) for doc in cursor]

    def create(self, definition: WorkflowDefinition) -> WorkflowDefinition:
        """Create a new workflow version"""
        # Keep datetimes native so Mongo can sort on them
        doc = definition.model_dump()
        doc["_id"] = definition.definition_id

        try:
            self._definitions.insert_one(doc)
        except DuplicateKeyError:
            raise AlreadyExistsError(
                f"Workflow {definition.name} version {definition.version} already exists",
                details={"workflow_name": definition.name, "version": definition.version}
            )

        logger.info(
            f"Created workflow {definition.name} v{definition.version}",
            extra={"workflow_name": definition.name, "workflow_version": definition.version}
        )
        return definition

    def set_active(self, name: str, version: int, active: bool) -> WorkflowDefinition:
        result = self._definitions.find_one_and_update(
            {"name": name, "version": version},
            {"$set": {"active": active}},
            return_document=ReturnDocument.AFTER
        )
        if result is None:
            raise WorkflowNotFoundError(
                f"Workflow {name} version {version} not found",
                details={"workflow_name": name, "version": version}
            )

        logger.info(
            f"Workflow {name} v{version} active={active}",
            extra={"workflow_name": name, "workflow_version": version}
        )
        return self._to_model(result)

    def deactivate_others(self, name: str, keep_version: int) -> int:
        result = self._definitions.update_many(
            {"name": name, "version": {"$ne": keep_version}, "active": True},
            {"$set": {"active": False}}
        )
        return result.modified_count
