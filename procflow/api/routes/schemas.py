"""Request/Response models shared by the API routes"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, ConfigDict

from ...domain.models import (
    ActionTemplate, ProcessInstance, ProcessStats, StateInterval, ValidationIssue
)
from ...domain.enums import ProcessPriority, ProcessStatus, SlaStatus


# ============================================================================
# Workflows
# ============================================================================

class CloneWorkflowRequest(BaseModel):
    """Request to clone a workflow under a new name"""
    new_name: str = Field(..., min_length=1, max_length=200)
    version: Optional[int] = Field(None, ge=1, description="Source version (defaults to the active one)")


class SetActiveRequest(BaseModel):
    active: bool


class ValidationResponse(BaseModel):
    """Validation result"""
    is_valid: bool
    errors: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[ValidationIssue] = Field(default_factory=list)


class WorkflowStatsResponse(BaseModel):
    """Version counts of one workflow plus counts of its processes"""
    name: str
    total_versions: int
    active_version: Optional[int] = None
    latest_version: int
    processes: ProcessStats


# ============================================================================
# Processes
# ============================================================================

class StartProcessRequest(BaseModel):
    """Request to start a process from a workflow"""
    model_config = ConfigDict(extra="forbid")

    workflow_name: str = Field(..., min_length=1)
    version: Optional[int] = Field(None, ge=1, description="Exact version (defaults to the active one)")
    title: Optional[str] = Field(None, max_length=500)
    description: Optional[str] = Field(None, max_length=5000)
    data: Dict[str, Any] = Field(default_factory=dict)
    priority: ProcessPriority = ProcessPriority.MEDIUM
    tags: List[str] = Field(default_factory=list)
    watchers: List[str] = Field(default_factory=list, description="User ids notified of every change")


class ExecuteActionRequest(BaseModel):
    """Request to execute an action"""
    payload: Dict[str, Any] = Field(default_factory=dict)
    comments: Optional[str] = Field(None, max_length=5000)


class CommentRequest(BaseModel):
    """Optional comment for cancel/suspend/resume"""
    comments: Optional[str] = Field(None, max_length=5000)


class ReassignRequest(BaseModel):
    assignees: List[str] = Field(default_factory=list)
    comments: Optional[str] = Field(None, max_length=5000)


class DeadlineRequest(BaseModel):
    deadline: Optional[datetime] = Field(None, description="ISO 8601; null clears the deadline")
    comments: Optional[str] = Field(None, max_length=5000)


class PriorityRequest(BaseModel):
    priority: ProcessPriority
    comments: Optional[str] = Field(None, max_length=5000)


class AddCommentRequest(BaseModel):
    """New entry for a process comment thread"""
    text: str = Field(..., min_length=1, max_length=5000)
    attachments: List[str] = Field(default_factory=list)


class BulkActionRequest(BaseModel):
    """Same action applied to several processes"""
    process_ids: List[str] = Field(..., min_length=1)
    payload: Dict[str, Any] = Field(default_factory=dict)
    comments: Optional[str] = Field(None, max_length=5000)


class BulkActionError(BaseModel):
    code: str
    message: str


class BulkActionResult(BaseModel):
    process_id: str
    success: bool
    status: Optional[ProcessStatus] = None
    current_state: Optional[str] = None
    error: Optional[BulkActionError] = None


class BulkActionResponse(BaseModel):
    action: str
    succeeded: int
    failed: int
    results: List[BulkActionResult]


class AvailableAction(BaseModel):
    """Action the caller may perform right now"""
    name: str
    label: Optional[str] = None
    target_state: str
    description: Optional[str] = None
    required_fields: List[str] = Field(default_factory=list)
    confirmation_required: bool = False

    @classmethod
    def from_template(cls, action: ActionTemplate) -> "AvailableAction":
        return cls(
            name=action.name,
            label=action.label or action.name,
            target_state=action.target_state,
            description=action.description,
            required_fields=list(action.required_fields),
            confirmation_required=action.confirmation_required
        )


class AvailableActionsResponse(BaseModel):
    process_id: str
    actions: List[AvailableAction]


class DwellTime(BaseModel):
    seconds: float
    visits: int
    display: str


class SlaResponse(BaseModel):
    process_id: str
    deadline: Optional[datetime] = None
    status: SlaStatus
    time_in_states: List[StateInterval] = Field(default_factory=list)
    dwell: Dict[str, DwellTime] = Field(default_factory=dict)


class ProcessListResponse(BaseModel):
    items: List[ProcessInstance]
    skip: int
    limit: int
