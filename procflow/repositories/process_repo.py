"""Process Repository - Data access for process instances"""
from typing import Any, Dict, List, Optional
from pymongo.collection import Collection
from pymongo import DESCENDING, ReturnDocument

from .base import ProcessInstanceStore
from .mongo_client import get_collection, PROCESS_INSTANCES
from ..domain.models import ProcessInstance
from ..domain.enums import ProcessStatus
from ..domain.errors import ConcurrencyError, ProcessNotFoundError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class MongoProcessRepository(ProcessInstanceStore):
    """Repository for process instances"""

    def __init__(self, collection: Optional[Collection] = None):
        self._processes: Collection = (
            collection if collection is not None else get_collection(PROCESS_INSTANCES)
        )

    def _to_model(self, doc: Dict[str, Any]) -> ProcessInstance:
        doc.pop("_id", None)
        return ProcessInstance.model_validate(doc)

    def find(self, process_id: str) -> Optional[ProcessInstance]:
        """Get process by ID"""
        doc = self._processes.find_one({"process_id": process_id})
        if doc:
            return self._to_model(doc)
        return None

    def create(self, process: ProcessInstance) -> ProcessInstance:
        """Create a new process"""
        # Don't use mode="json" - it converts datetime to strings, breaking MongoDB sorting
        doc = process.model_dump()
        doc["_id"] = process.process_id

        self._processes.insert_one(doc)
        logger.info(
            f"Created process: {process.process_id}",
            extra={"process_id": process.process_id, "workflow_name": process.workflow_name}
        )
        return process

    def save(self, process: ProcessInstance, expected_revision: int) -> ProcessInstance:
        """Replace the stored process with optimistic concurrency on revision"""
        saved = process.model_copy(update={"revision": expected_revision + 1})
        doc = saved.model_dump()
        doc["_id"] = saved.process_id

        result = self._processes.find_one_and_replace(
            {"process_id": process.process_id, "revision": expected_revision},
            doc,
            return_document=ReturnDocument.AFTER
        )

        if result is None:
            exists = self._processes.find_one({"process_id": process.process_id})
            if exists:
                raise ConcurrencyError(
                    f"Process {process.process_id} was modified. Please refresh and try again.",
                    details={
                        "process_id": process.process_id,
                        "expected_revision": expected_revision,
                        "current_revision": exists.get("revision")
                    }
                )
            raise ProcessNotFoundError(
                f"Process {process.process_id} not found",
                details={"process_id": process.process_id}
            )

        logger.info(
            f"Saved process: {process.process_id} (revision {saved.revision})",
            extra={"process_id": process.process_id, "state": saved.current_state}
        )
        return self._to_model(result)

    def list_processes(
        self,
        status: Optional[ProcessStatus] = None,
        workflow_name: Optional[str] = None,
        assigned_to: Optional[str] = None,
        started_by: Optional[str] = None,
        skip: int = 0,
        limit: int = 50
    ) -> List[ProcessInstance]:
        """List processes with filters"""
        query: Dict[str, Any] = {}
        if status:
            query["status"] = ProcessStatus(status).value
        if workflow_name:
            query["workflow_name"] = workflow_name
        if assigned_to:
            query["assigned_to"] = assigned_to
        if started_by:
            query["started_by"] = started_by

        cursor = self._processes.find(query).sort("updated_at", DESCENDING).skip(skip).limit(limit)
        return [self._to_model(doc) for doc in cursor]

    def count_by(
        self,
        field: str,
        workflow_name: Optional[str] = None,
        participant: Optional[str] = None
    ) -> Dict[str, int]:
        """Group and count with one aggregation"""
        if field not in self.COUNTABLE_FIELDS:
            raise ValueError(f"Cannot count processes by {field}")

        match: Dict[str, Any] = {}
        if workflow_name:
            match["workflow_name"] = workflow_name
        if participant:
            match["$or"] = [{"assigned_to": participant}, {"started_by": participant}]

        pipeline = [
            {"$match": match},
            {"$group": {"_id": f"${field}", "count": {"$sum": 1}}},
        ]
        return {str(doc["_id"]): doc["count"] for doc in self._processes.aggregate(pipeline)}
