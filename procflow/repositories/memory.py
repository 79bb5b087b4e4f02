"""In-memory repositories for local runs and tests.

Data is not persisted across process restarts. Stored objects are copied on
the way in and out so callers never share state with the store.
"""
import threading
from collections import Counter
from typing import Dict, List, Optional, Tuple

from .base import WorkflowDefinitionStore, ProcessInstanceStore
from ..domain.models import WorkflowDefinition, ProcessInstance
from ..domain.enums import ProcessStatus
from ..domain.errors import (
    AlreadyExistsError, ConcurrencyError, ProcessNotFoundError, WorkflowNotFoundError
)
from ..utils.logger import get_logger

logger = get_logger(__name__)


class InMemoryWorkflowRepository(WorkflowDefinitionStore):
    """Store workflow definitions in local memory"""

    def __init__(self) -> None:
        self._definitions: Dict[Tuple[str, int], WorkflowDefinition] = {}
        self._lock = threading.Lock()

    def find(self, name: str, version: int) -> Optional[WorkflowDefinition]:
        return self._definitions.get((name, version))

    def find_active(self, name: str) -> Optional[WorkflowDefinition]:
        active = [d for d in self.list_versions(name) if d.active]
        return active[-1] if active else None

    def list_versions(self, name: str) -> List[WorkflowDefinition]:
        with self._lock:
            versions = [d for (n, _), d in self._definitions.items() if n == name]
        return sorted(versions, key=lambda d: d.version)

    def list_active(self) -> List[WorkflowDefinition]:
        with self._lock:
            active = [d for d in self._definitions.values() if d.active]
        return sorted(active, key=lambda d: (d.name, d.version))

    def create(self, definition: WorkflowDefinition) -> WorkflowDefinition:
        with self._lock:
            if definition.ref in self._definitions:
                raise AlreadyExistsError(
                    f"Workflow {definition.name} version {definition.version} already exists",
                    details={"workflow_name": definition.name, "version": definition.version}
                )
            # Definitions are frozen models, safe to share
            self._definitions[definition.ref] = definition
        return definition

    def set_active(self, name: str, version: int, active: bool) -> WorkflowDefinition:
        with self._lock:
            current = self._definitions.get((name, version))
            if current is None:
                raise WorkflowNotFoundError(
                    f"Workflow {name} version {version} not found",
                    details={"workflow_name": name, "version": version}
                )
            updated = current.model_copy(update={"active": active})
            self._definitions[(name, version)] = updated
        return updated

    def deactivate_others(self, name: str, keep_version: int) -> int:
        changed = 0
        with self._lock:
            for key, definition in list(self._definitions.items()):
                if key[0] == name and key[1] != keep_version and definition.active:
                    self._definitions[key] = definition.model_copy(update={"active": False})
                    changed += 1
        return changed


class InMemoryProcessRepository(ProcessInstanceStore):
    """Store process instances in local memory with revision checks"""

    def __init__(self) -> None:
        self._processes: Dict[str, ProcessInstance] = {}
        self._lock = threading.Lock()

    def find(self, process_id: str) -> Optional[ProcessInstance]:
        with self._lock:
            process = self._processes.get(process_id)
            return process.model_copy(deep=True) if process else None

    def create(self, process: ProcessInstance) -> ProcessInstance:
        with self._lock:
            if process.process_id in self._processes:
                raise AlreadyExistsError(f"Process {process.process_id} already exists")
            self._processes[process.process_id] = process.model_copy(deep=True)
        return process

    def save(self, process: ProcessInstance, expected_revision: int) -> ProcessInstance:
        with self._lock:
            stored = self._processes.get(process.process_id)
            if stored is None:
                raise ProcessNotFoundError(
                    f"Process {process.process_id} not found",
                    details={"process_id": process.process_id}
                )
            if stored.revision != expected_revision:
                raise ConcurrencyError(
                    f"Process {process.process_id} was modified. Please refresh and try again.",
                    details={
                        "process_id": process.process_id,
                        "expected_revision": expected_revision,
                        "current_revision": stored.revision
                    }
                )
            saved = process.model_copy(deep=True, update={"revision": expected_revision + 1})
            self._processes[process.process_id] = saved
            return saved.model_copy(deep=True)

    def list_processes(
        self,
        status: Optional[ProcessStatus] = None,
        workflow_name: Optional[str] = None,
        assigned_to: Optional[str] = None,
        started_by: Optional[str] = None,
        skip: int = 0,
        limit: int = 50
    ) -> List[ProcessInstance]:
        with self._lock:
            processes = list(self._processes.values())

        if status:
            processes = [p for p in processes if p.status == ProcessStatus(status)]
        if workflow_name:
            processes = [p for p in processes if p.workflow_name == workflow_name]
        if assigned_to:
            processes = [p for p in processes if assigned_to in p.assigned_to]
        if started_by:
            processes = [p for p in processes if p.started_by == started_by]

        processes.sort(key=lambda p: p.updated_at, reverse=True)
        return [p.model_copy(deep=True) for p in processes[skip:skip + limit]]

    def count_by(
        self,
        field: str,
        workflow_name: Optional[str] = None,
        participant: Optional[str] = None
    ) -> Dict[str, int]:
        if field not in self.COUNTABLE_FIELDS:
            raise ValueError(f"Cannot count processes by {field}")

        with self._lock:
            processes = list(self._processes.values())

        if workflow_name:
            processes = [p for p in processes if p.workflow_name == workflow_name]
        if participant:
            processes = [
                p for p in processes
                if participant in p.assigned_to or p.started_by == participant
            ]

        counts = Counter(_group_key(getattr(p, field)) for p in processes)
        return dict(counts)


def _group_key(value) -> str:
    return value.value if hasattr(value, "value") else str(value)
