"""Workflow Service - Template lifecycle business logic"""
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from ..domain.models import (
    ActorContext, ValidationResult, WorkflowDefinition, WorkflowDefinitionInput
)
from ..domain.errors import (
    AlreadyExistsError, ForbiddenError, ValidationError, WorkflowNotFoundError
)
from ..engine.permission_guard import PermissionGuard
from ..engine.workflow_validator import WorkflowValidator
from ..repositories.base import WorkflowDefinitionStore
from ..utils.idgen import generate_definition_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


class WorkflowService:
    """
    Service for workflow template operations

    Templates are immutable. Editing publishes a new version that becomes
    the only active one; processes already running keep their version.
    Only the super-role may change templates.
    """

    def __init__(
        self,
        repo: WorkflowDefinitionStore,
        permission_guard: Optional[PermissionGuard] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.repo = repo
        self.validator = WorkflowValidator()
        self.permission_guard = permission_guard or PermissionGuard()
        self.clock = clock or utc_now

    def validate(self, definition: WorkflowDefinitionInput) -> ValidationResult:
        """Validate without saving"""
        return self.validator.validate(definition)

    def create_workflow(
        self,
        definition: WorkflowDefinitionInput,
        actor: ActorContext
    ) -> WorkflowDefinition:
        """Publish version 1 of a new template"""
        self._require_admin(actor)

        if self.repo.list_versions(definition.name):
            raise AlreadyExistsError(
                f"Workflow {definition.name} already exists",
                details={"workflow_name": definition.name}
            )

        self.validator.ensure_valid(definition)
        created = self.repo.create(self._build(definition, 1, actor))

        logger.info(
            f"Workflow {created.name} created",
            extra={"workflow_name": created.name, "workflow_version": 1, "actor_id": actor.actor_id}
        )
        return created

    def create_version(
        self,
        name: str,
        definition: WorkflowDefinitionInput,
        actor: ActorContext
    ) -> WorkflowDefinition:
        """
        Publish an edited template as a new version

        The new version is active; every earlier version is deactivated.
        """
        self._require_admin(actor)

        if definition.name != name:
            raise ValidationError(
                "Workflow name cannot be changed by a new version; clone it instead",
                details={"workflow_name": name, "submitted_name": definition.name}
            )

        latest = self.repo.latest_version(name)
        if latest is None:
            raise WorkflowNotFoundError(
                f"Workflow {name} not found",
                details={"workflow_name": name}
            )

        self.validator.ensure_valid(definition)

        new_version = latest.version + 1
        candidate = self._build(definition, new_version, actor).model_copy(update={"active": False})
        self.repo.create(candidate)
        # Activate before retiring the rest so some version is always active
        created = self.repo.set_active(name, new_version, True)
        self.repo.deactivate_others(name, new_version)

        logger.info(
            f"Workflow {name} v{new_version} published",
            extra={"workflow_name": name, "workflow_version": new_version, "actor_id": actor.actor_id}
        )
        return created

    def clone_workflow(
        self,
        source_name: str,
        new_name: str,
        actor: ActorContext,
        version: Optional[int] = None
    ) -> WorkflowDefinition:
        """Copy a template (active version unless one is given) under a new name as version 1"""
        self._require_admin(actor)

        source = self.repo.find_or_raise(source_name, version)
        if self.repo.list_versions(new_name):
            raise AlreadyExistsError(
                f"Workflow {new_name} already exists",
                details={"workflow_name": new_name}
            )

        content = WorkflowDefinitionInput(
            name=new_name,
            description=source.description,
            category=source.category,
            states=list(source.states),
            fields=list(source.fields),
            sla_minutes=source.sla_minutes
        )
        self.validator.ensure_valid(content)
        cloned = self.repo.create(self._build(content, 1, actor))

        logger.info(
            f"Workflow {source.name} v{source.version} cloned as {new_name}",
            extra={"workflow_name": new_name, "actor_id": actor.actor_id}
        )
        return cloned

    def set_active(
        self,
        name: str,
        version: int,
        active: bool,
        actor: ActorContext
    ) -> WorkflowDefinition:
        """Activate one version (deactivating the rest) or deactivate it"""
        self._require_admin(actor)
        self.repo.find_or_raise(name, version)

        updated = self.repo.set_active(name, version, active)
        if active:
            self.repo.deactivate_others(name, version)

        logger.info(
            f"Workflow {name} v{version} {'activated' if active else 'deactivated'}",
            extra={"workflow_name": name, "workflow_version": version, "actor_id": actor.actor_id}
        )
        return updated

    def get_version(self, name: str, version: int) -> WorkflowDefinition:
        return self.repo.find_or_raise(name, version)

    def get_active(self, name: str) -> WorkflowDefinition:
        return self.repo.find_or_raise(name)

    def list_versions(self, name: str) -> List[WorkflowDefinition]:
        versions = self.repo.list_versions(name)
        if not versions:
            raise WorkflowNotFoundError(
                f"Workflow {name} not found",
                details={"workflow_name": name}
            )
        return versions

    def get_version_summary(self, name: str) -> Dict[str, Any]:
        """Version counts of one template"""
        versions = self.list_versions(name)
        active = [v.version for v in versions if v.active]
        return {
            "name": name,
            "total_versions": len(versions),
            "active_version": active[-1] if active else None,
            "latest_version": versions[-1].version
        }

    def list_workflows(self) -> List[WorkflowDefinition]:
        """Active version of every template"""
        return self.repo.list_active()

    def _build(
        self,
        definition: WorkflowDefinitionInput,
        version: int,
        actor: ActorContext
    ) -> WorkflowDefinition:
        return WorkflowDefinition(
            definition_id=generate_definition_id(),
            name=definition.name,
            version=version,
            active=True,
            description=definition.description,
            category=definition.category,
            states=definition.states,
            fields=definition.fields,
            sla_minutes=definition.sla_minutes,
            created_by=actor.actor_id,
            created_at=self.clock()
        )

    def _require_admin(self, actor: ActorContext) -> None:
        if not self.permission_guard.is_admin(actor):
            raise ForbiddenError(
                "Only an administrator can change workflow templates",
                details={"actor_id": actor.actor_id}
            )
