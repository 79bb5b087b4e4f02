"""Workflow API Routes - Template lifecycle endpoints"""
from typing import List
from fastapi import APIRouter, Depends, status

from .schemas import (
    CloneWorkflowRequest, SetActiveRequest, ValidationResponse, WorkflowStatsResponse
)
from ..deps import (
    get_current_actor_dep, get_correlation_id_dep, get_engine_dep, get_workflow_service_dep
)
from ...domain.models import ActorContext, WorkflowDefinition, WorkflowDefinitionInput
from ...engine.engine import ProcessEngine
from ...services.workflow_service import WorkflowService
from ...utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.get("", response_model=List[WorkflowDefinition])
def list_workflows(
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: WorkflowService = Depends(get_workflow_service_dep)
):
    """List the active version of every workflow"""
    return service.list_workflows()


@router.post("", response_model=WorkflowDefinition, status_code=status.HTTP_201_CREATED)
def create_workflow(
    request: WorkflowDefinitionInput,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: WorkflowService = Depends(get_workflow_service_dep)
):
    """
    Create a new workflow

    The template is validated and published as version 1 (active).
    """
    return service.create_workflow(request, actor)


@router.post("/validate", response_model=ValidationResponse)
def validate_workflow(
    request: WorkflowDefinitionInput,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: WorkflowService = Depends(get_workflow_service_dep)
):
    """Validate a template without saving it"""
    result = service.validate(request)
    return ValidationResponse(is_valid=result.is_valid, errors=result.errors, warnings=result.warnings)


@router.get("/{name}/versions", response_model=List[WorkflowDefinition])
def list_versions(
    name: str,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: WorkflowService = Depends(get_workflow_service_dep)
):
    return service.list_versions(name)


@router.get("/{name}/versions/{version}", response_model=WorkflowDefinition)
def get_version(
    name: str,
    version: int,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: WorkflowService = Depends(get_workflow_service_dep)
):
    return service.get_version(name, version)


@router.get("/{name}/active", response_model=WorkflowDefinition)
def get_active(
    name: str,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: WorkflowService = Depends(get_workflow_service_dep)
):
    return service.get_active(name)


@router.put("/{name}", response_model=WorkflowDefinition)
def publish_new_version(
    name: str,
    request: WorkflowDefinitionInput,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: WorkflowService = Depends(get_workflow_service_dep)
):
    """
    Publish an edited template as a new version

    Earlier versions are deactivated; running processes keep their version.
    """
    return service.create_version(name, request, actor)


@router.post("/{name}/clone", response_model=WorkflowDefinition, status_code=status.HTTP_201_CREATED)
def clone_workflow(
    name: str,
    request: CloneWorkflowRequest,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: WorkflowService = Depends(get_workflow_service_dep)
):
    return service.clone_workflow(name, request.new_name, actor, version=request.version)


@router.patch("/{name}/versions/{version}/active", response_model=WorkflowDefinition)
def set_active(
    name: str,
    version: int,
    request: SetActiveRequest,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: WorkflowService = Depends(get_workflow_service_dep)
):
    """Activate (deactivating other versions) or deactivate one version"""
    return service.set_active(name, version, request.active, actor)


@router.get("/{name}/stats", response_model=WorkflowStatsResponse)
def get_workflow_stats(
    name: str,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: WorkflowService = Depends(get_workflow_service_dep),
    engine: ProcessEngine = Depends(get_engine_dep)
):
    """Version summary plus counts of the workflow's processes the caller can see"""
    summary = service.get_version_summary(name)
    return WorkflowStatsResponse(
        **summary,
        processes=engine.get_process_stats(actor, workflow_name=name)
    )
