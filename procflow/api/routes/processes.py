"""Process API Routes - Starting and advancing process instances"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status

from .schemas import (
    StartProcessRequest, ExecuteActionRequest, CommentRequest, ReassignRequest,
    DeadlineRequest, PriorityRequest, AddCommentRequest, BulkActionRequest,
    BulkActionResponse, AvailableAction, AvailableActionsResponse, SlaResponse,
    ProcessListResponse
)
from ..deps import get_current_actor_dep, get_correlation_id_dep, get_engine_dep
from ...domain.models import ActorContext, Comment, HistoryEntry, ProcessInstance, ProcessStats
from ...domain.enums import ProcessStatus
from ...engine.engine import ProcessEngine
from ...utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.post("", response_model=ProcessInstance, status_code=status.HTTP_201_CREATED)
def start_process(
    request: StartProcessRequest,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    engine: ProcessEngine = Depends(get_engine_dep)
):
    """
    Start a new process

    Binds the requested (or active) workflow version and enters its
    initial state.
    """
    return engine.start_process(
        workflow_name=request.workflow_name,
        initial_data=request.data,
        actor=actor,
        version=request.version,
        title=request.title,
        description=request.description,
        priority=request.priority,
        tags=request.tags,
        watchers=request.watchers
    )


@router.get("", response_model=ProcessListResponse)
def list_processes(
    status: Optional[ProcessStatus] = Query(None),
    workflow_name: Optional[str] = Query(None),
    assigned_to: Optional[str] = Query(None),
    started_by: Optional[str] = Query(None),
    mine: bool = Query(False, description="Only processes assigned to the caller"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    engine: ProcessEngine = Depends(get_engine_dep)
):
    items = engine.list_processes(
        status=status,
        workflow_name=workflow_name,
        assigned_to=actor.actor_id if mine else assigned_to,
        started_by=started_by,
        skip=skip,
        limit=limit
    )
    return ProcessListResponse(items=items, skip=skip, limit=limit)


@router.get("/stats", response_model=ProcessStats)
def get_process_stats(
    workflow_name: Optional[str] = Query(None),
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    engine: ProcessEngine = Depends(get_engine_dep)
):
    """Counts of the processes the caller can see (all of them for the super-role)"""
    return engine.get_process_stats(actor, workflow_name=workflow_name)


@router.post("/bulk-actions/{action_name}", response_model=BulkActionResponse)
def bulk_action(
    action_name: str,
    request: BulkActionRequest,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    engine: ProcessEngine = Depends(get_engine_dep)
):
    """
    Apply one action to several processes

    Always 200; each process reports its own outcome.
    """
    results = engine.bulk_action(
        process_ids=request.process_ids,
        action_name=action_name,
        actor=actor,
        payload=request.payload,
        comments=request.comments
    )
    succeeded = sum(1 for r in results if r["success"])
    return BulkActionResponse(
        action=action_name,
        succeeded=succeeded,
        failed=len(results) - succeeded,
        results=results
    )


@router.get("/{process_id}", response_model=ProcessInstance)
def get_process(
    process_id: str,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    engine: ProcessEngine = Depends(get_engine_dep)
):
    return engine.get_process(process_id)


@router.post("/{process_id}/actions/{action_name}", response_model=ProcessInstance)
def execute_action(
    process_id: str,
    action_name: str,
    request: ExecuteActionRequest,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    engine: ProcessEngine = Depends(get_engine_dep)
):
    """
    Execute an action declared on the process's current state

    Returns the updated process. Nothing is changed when any check fails.
    """
    return engine.execute_action(
        process_id=process_id,
        action_name=action_name,
        actor=actor,
        payload=request.payload,
        comments=request.comments
    )


@router.get("/{process_id}/available-actions", response_model=AvailableActionsResponse)
def get_available_actions(
    process_id: str,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    engine: ProcessEngine = Depends(get_engine_dep)
):
    actions = engine.get_available_actions(process_id, actor.roles)
    return AvailableActionsResponse(
        process_id=process_id,
        actions=[AvailableAction.from_template(a) for a in actions]
    )


@router.get("/{process_id}/history", response_model=List[HistoryEntry])
def get_history(
    process_id: str,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    engine: ProcessEngine = Depends(get_engine_dep)
):
    return engine.get_history(process_id)


@router.get("/{process_id}/sla", response_model=SlaResponse)
def get_sla(
    process_id: str,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    engine: ProcessEngine = Depends(get_engine_dep)
):
    return SlaResponse(**engine.get_sla(process_id))


@router.post("/{process_id}/sla/refresh", response_model=ProcessInstance)
def refresh_sla(
    process_id: str,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    engine: ProcessEngine = Depends(get_engine_dep)
):
    """Recompute and store the SLA status"""
    return engine.refresh_sla(process_id)


# ============================================================================
# Administrative operations
# ============================================================================

@router.post("/{process_id}/cancel", response_model=ProcessInstance)
def cancel_process(
    process_id: str,
    request: Optional[CommentRequest] = None,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    engine: ProcessEngine = Depends(get_engine_dep)
):
    return engine.cancel_process(process_id, actor, comments=request.comments if request else None)


@router.post("/{process_id}/suspend", response_model=ProcessInstance)
def suspend_process(
    process_id: str,
    request: Optional[CommentRequest] = None,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    engine: ProcessEngine = Depends(get_engine_dep)
):
    return engine.suspend_process(process_id, actor, comments=request.comments if request else None)


@router.post("/{process_id}/resume", response_model=ProcessInstance)
def resume_process(
    process_id: str,
    request: Optional[CommentRequest] = None,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    engine: ProcessEngine = Depends(get_engine_dep)
):
    return engine.resume_process(process_id, actor, comments=request.comments if request else None)


@router.put("/{process_id}/assignees", response_model=ProcessInstance)
def reassign_process(
    process_id: str,
    request: ReassignRequest,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    engine: ProcessEngine = Depends(get_engine_dep)
):
    return engine.reassign_process(process_id, request.assignees, actor, comments=request.comments)


@router.put("/{process_id}/deadline", response_model=ProcessInstance)
def set_deadline(
    process_id: str,
    request: DeadlineRequest,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    engine: ProcessEngine = Depends(get_engine_dep)
):
    return engine.set_deadline(process_id, request.deadline, actor, comments=request.comments)


@router.put("/{process_id}/priority", response_model=ProcessInstance)
def set_priority(
    process_id: str,
    request: PriorityRequest,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    engine: ProcessEngine = Depends(get_engine_dep)
):
    return engine.set_priority(process_id, request.priority, actor, comments=request.comments)


# ============================================================================
# Comments
# ============================================================================

@router.post("/{process_id}/comments", response_model=Comment, status_code=status.HTTP_201_CREATED)
def add_comment(
    process_id: str,
    request: AddCommentRequest,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    engine: ProcessEngine = Depends(get_engine_dep)
):
    """Post to the process thread (super-role, starter or assignee)"""
    return engine.add_comment(process_id, request.text, actor, attachments=request.attachments)


@router.get("/{process_id}/comments", response_model=List[Comment])
def get_comments(
    process_id: str,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    engine: ProcessEngine = Depends(get_engine_dep)
):
    return engine.get_comments(process_id)
