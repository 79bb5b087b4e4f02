"""Repository interfaces consumed by the engine and services"""
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from ..domain.models import WorkflowDefinition, ProcessInstance
from ..domain.enums import ProcessStatus
from ..domain.errors import WorkflowNotFoundError, ProcessNotFoundError


class WorkflowDefinitionStore(ABC):
    """Versioned workflow template storage. Identity is (name, version)."""

    @abstractmethod
    def find(self, name: str, version: int) -> Optional[WorkflowDefinition]:
        """Get an exact template version"""

    @abstractmethod
    def find_active(self, name: str) -> Optional[WorkflowDefinition]:
        """Get the active version of a template"""

    @abstractmethod
    def list_versions(self, name: str) -> List[WorkflowDefinition]:
        """All versions of a template, oldest first"""

    @abstractmethod
    def list_active(self) -> List[WorkflowDefinition]:
        """Active version of every template, ordered by name"""

    @abstractmethod
    def create(self, definition: WorkflowDefinition) -> WorkflowDefinition:
        """Persist a new version; raises AlreadyExistsError on (name, version) clash"""

    @abstractmethod
    def set_active(self, name: str, version: int, active: bool) -> WorkflowDefinition:
        """Flip the active flag of one version"""

    @abstractmethod
    def deactivate_others(self, name: str, keep_version: int) -> int:
        """Mark every version except keep_version inactive; returns the count changed"""

    def latest_version(self, name: str) -> Optional[WorkflowDefinition]:
        versions = self.list_versions(name)
        return versions[-1] if versions else None

    def find_or_raise(self, name: str, version: Optional[int] = None) -> WorkflowDefinition:
        """Exact version when given, otherwise the active one"""
        if version is not None:
            definition = self.find(name, version)
            if not definition:
                raise WorkflowNotFoundError(
                    f"Workflow {name} version {version} not found",
                    details={"workflow_name": name, "version": version}
                )
            return definition

        definition = self.find_active(name)
        if not definition:
            raise WorkflowNotFoundError(
                f"No active version of workflow {name}",
                details={"workflow_name": name}
            )
        return definition


class ProcessInstanceStore(ABC):
    """Process instance storage with optimistic concurrency on revision"""

    # Fields count_by may group on
    COUNTABLE_FIELDS = ("status", "current_state", "priority", "workflow_name")

    @abstractmethod
    def find(self, process_id: str) -> Optional[ProcessInstance]:
        """Get process by ID"""

    @abstractmethod
    def create(self, process: ProcessInstance) -> ProcessInstance:
        """Persist a new process"""

    @abstractmethod
    def save(self, process: ProcessInstance, expected_revision: int) -> ProcessInstance:
        """
        Replace the stored instance if its revision still equals expected_revision

        The stored copy gets revision expected_revision + 1 and is returned.

        Raises:
            ConcurrencyError: Stored revision differs
            ProcessNotFoundError: Process does not exist
        """

    @abstractmethod
    def list_processes(
        self,
        status: Optional[ProcessStatus] = None,
        workflow_name: Optional[str] = None,
        assigned_to: Optional[str] = None,
        started_by: Optional[str] = None,
        skip: int = 0,
        limit: int = 50
    ) -> List[ProcessInstance]:
        """List processes, most recently updated first"""

    @abstractmethod
    def count_by(
        self,
        field: str,
        workflow_name: Optional[str] = None,
        participant: Optional[str] = None
    ) -> Dict[str, int]:
        """
        Count processes grouped by one of COUNTABLE_FIELDS

        participant restricts the count to processes the user started or
        is assigned to.
        """

    def find_or_raise(self, process_id: str) -> ProcessInstance:
        process = self.find(process_id)
        if not process:
            raise ProcessNotFoundError(
                f"Process {process_id} not found",
                details={"process_id": process_id}
            )
        return process
