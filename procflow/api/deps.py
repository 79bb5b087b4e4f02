"""API Dependencies - Common dependencies for routes"""
from functools import lru_cache
from typing import Optional
from fastapi import Depends, Header

from ..config.settings import settings
from ..domain.models import ActorContext
from ..domain.errors import AuthenticationError
from ..engine.engine import ProcessEngine
from ..engine.instance_lock import InstanceLockRegistry
from ..repositories.base import WorkflowDefinitionStore, ProcessInstanceStore
from ..repositories.memory import InMemoryWorkflowRepository, InMemoryProcessRepository
from ..repositories.workflow_repo import MongoWorkflowRepository
from ..repositories.process_repo import MongoProcessRepository
from ..services.directory_service import (
    DirectoryService, MongoDirectoryService, StaticDirectoryService
)
from ..services.notification_service import (
    NotificationService, OutboxNotificationService, LoggingNotificationService
)
from ..services.workflow_service import WorkflowService
from ..utils.logger import set_correlation_id
from ..utils.idgen import generate_correlation_id


async def get_correlation_id_dep(
    x_correlation_id: Optional[str] = Header(None, alias="X-Correlation-Id")
) -> str:
    """
    Get or generate correlation ID for request tracing

    If client provides X-Correlation-Id, use it.
    Otherwise generate a new one.
    """
    correlation_id = x_correlation_id or generate_correlation_id()
    set_correlation_id(correlation_id)
    return correlation_id


async def get_current_actor_dep(
    x_actor_id: Optional[str] = Header(None, alias="X-Actor-Id"),
    x_actor_roles: Optional[str] = Header(None, alias="X-Actor-Roles"),
    x_actor_name: Optional[str] = Header(None, alias="X-Actor-Name")
) -> ActorContext:
    """
    Actor resolved by the upstream gateway

    Roles arrive comma separated. Raw tokens are never handled here.

    Raises:
        AuthenticationError: 401 if the actor ID header is missing
    """
    if not x_actor_id or not x_actor_id.strip():
        raise AuthenticationError("X-Actor-Id header is missing")

    roles = [r.strip() for r in (x_actor_roles or "").split(",") if r.strip()]
    return ActorContext(
        actor_id=x_actor_id.strip(),
        display_name=x_actor_name,
        roles=roles
    )


# ============================================================================
# Collaborators
# ============================================================================

@lru_cache()
def _memory_workflow_repo() -> InMemoryWorkflowRepository:
    return InMemoryWorkflowRepository()


@lru_cache()
def _memory_process_repo() -> InMemoryProcessRepository:
    return InMemoryProcessRepository()


@lru_cache()
def _static_directory() -> StaticDirectoryService:
    return StaticDirectoryService()


@lru_cache()
def get_lock_registry() -> InstanceLockRegistry:
    """One registry per process so every request shares the same locks"""
    return InstanceLockRegistry()


def get_workflow_repo_dep() -> WorkflowDefinitionStore:
    if settings.uses_memory_backend:
        return _memory_workflow_repo()
    return MongoWorkflowRepository()


def get_process_repo_dep() -> ProcessInstanceStore:
    if settings.uses_memory_backend:
        return _memory_process_repo()
    return MongoProcessRepository()


def get_directory_dep() -> DirectoryService:
    if settings.uses_memory_backend:
        return _static_directory()
    return MongoDirectoryService()


def get_notifier_dep() -> NotificationService:
    if settings.uses_memory_backend:
        return LoggingNotificationService()
    return OutboxNotificationService()


def get_engine_dep(
    workflow_repo: WorkflowDefinitionStore = Depends(get_workflow_repo_dep),
    process_repo: ProcessInstanceStore = Depends(get_process_repo_dep),
    directory: DirectoryService = Depends(get_directory_dep),
    notifier: NotificationService = Depends(get_notifier_dep)
) -> ProcessEngine:
    return ProcessEngine(
        workflow_repo=workflow_repo,
        process_repo=process_repo,
        directory=directory,
        notifier=notifier,
        lock_registry=get_lock_registry()
    )


def get_workflow_service_dep(
    workflow_repo: WorkflowDefinitionStore = Depends(get_workflow_repo_dep)
) -> WorkflowService:
    return WorkflowService(workflow_repo)
