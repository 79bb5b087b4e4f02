"""Domain Models - Pydantic schemas for all entities"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from pydantic import BaseModel, Field, ConfigDict

from .enums import (
    ProcessStatus, ProcessPriority, SlaStatus, FieldType, ConditionOperator, NotificationStatus
)


# ============================================================================
# Actor
# ============================================================================

class ActorContext(BaseModel):
    """Already-authenticated caller with a resolved role set"""
    model_config = ConfigDict(extra="forbid")

    actor_id: str = Field(..., description="Opaque user ID")
    display_name: Optional[str] = Field(None, description="User display name")
    roles: List[str] = Field(default_factory=list, description="Assigned roles")


# ============================================================================
# Condition (declarative predicates over process data)
# ============================================================================

class Condition(BaseModel):
    """Single predicate evaluated against process data"""
    model_config = ConfigDict(extra="forbid", frozen=True)

    field: str = Field(..., description="Dotted path into process data")
    operator: ConditionOperator = Field(..., description="Comparison operator")
    value: Any = Field(None, description="Value to compare against")


class ConditionGroup(BaseModel):
    """Group of conditions with AND/OR logic"""
    model_config = ConfigDict(extra="forbid", frozen=True)

    logic: str = Field("AND", description="AND or OR")
    conditions: List[Condition] = Field(default_factory=list)


# ============================================================================
# Workflow Template
# ============================================================================

class FieldDefinition(BaseModel):
    """Declared type of one process data key"""
    model_config = ConfigDict(extra="forbid", frozen=True)

    key: str = Field(..., min_length=1, description="Top-level data key")
    field_type: FieldType = Field(..., description="Value type")
    label: Optional[str] = None
    options: Optional[List[Any]] = Field(None, description="Allowed values for select/multiselect")


class ActionTemplate(BaseModel):
    """A named, role-gated transition out of a state"""
    model_config = ConfigDict(extra="ignore", frozen=True)

    name: str = Field(..., min_length=1, description="Unique within the owning state")
    label: Optional[str] = None
    target_state: str = Field(..., description="Name of the state this action moves to")
    allowed_roles: List[str] = Field(default_factory=list, description="Empty means unrestricted")
    required_fields: List[str] = Field(default_factory=list, description="Payload keys (dotted paths) that must be present")
    condition: Optional[ConditionGroup] = Field(None, description="Must hold over process data for the action to be available")
    description: Optional[str] = None
    confirmation_required: bool = False


class StateTemplate(BaseModel):
    """Named state within a workflow template"""
    model_config = ConfigDict(extra="ignore", frozen=True)

    name: str = Field(..., min_length=1, description="Unique within the template")
    label: Optional[str] = None
    description: Optional[str] = None
    is_initial: bool = False
    is_final: bool = False
    assigned_roles: List[str] = Field(default_factory=list, description="Roles eligible to own instances in this state")
    required_fields: List[str] = Field(default_factory=list, description="Keys required in initial data when this is the initial state")
    actions: List[ActionTemplate] = Field(default_factory=list)

    def get_action(self, action_name: str) -> Optional[ActionTemplate]:
        for action in self.actions:
            if action.name == action_name:
                return action
        return None


class WorkflowDefinition(BaseModel):
    """
    Published workflow template (immutable).

    Identity is (name, version). Editing a template creates a new version;
    running processes keep the version they were started with.
    """
    model_config = ConfigDict(extra="ignore", frozen=True)

    definition_id: Optional[str] = Field(default=None, description="Opaque storage ID")
    name: str = Field(..., min_length=1, description="Workflow name")
    version: int = Field(default=1, ge=1, description="Version number")
    active: bool = Field(default=True, description="Only the active version can start new processes")
    description: Optional[str] = None
    category: Optional[str] = None
    states: List[StateTemplate] = Field(default_factory=list)
    fields: List[FieldDefinition] = Field(default_factory=list, description="Typed data schema (optional)")
    sla_minutes: Optional[int] = Field(default=None, gt=0, description="Default process deadline after start")
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    def get_state(self, state_name: str) -> Optional[StateTemplate]:
        """Find state by name"""
        for state in self.states:
            if state.name == state_name:
                return state
        return None

    def get_initial_state(self) -> Optional[StateTemplate]:
        """The unique initial state, or None if there is not exactly one"""
        initial = [s for s in self.states if s.is_initial]
        return initial[0] if len(initial) == 1 else None

    @property
    def state_names(self) -> List[str]:
        return [s.name for s in self.states]

    @property
    def field_map(self) -> Dict[str, FieldDefinition]:
        return {f.key: f for f in self.fields}

    @property
    def ref(self) -> Tuple[str, int]:
        return (self.name, self.version)


class WorkflowDefinitionInput(BaseModel):
    """Editable template content (everything except identity and audit fields)"""
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    category: Optional[str] = None
    states: List[StateTemplate] = Field(default_factory=list)
    fields: List[FieldDefinition] = Field(default_factory=list)
    sla_minutes: Optional[int] = Field(default=None, gt=0)


class ValidationIssue(BaseModel):
    """One structural error or warning reported by the validator"""
    kind: str
    message: str
    state: Optional[str] = None
    action: Optional[str] = None
    target: Optional[str] = None
    field: Optional[str] = None


class ValidationResult(BaseModel):
    """Outcome of validating a workflow template"""
    is_valid: bool
    errors: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[ValidationIssue] = Field(default_factory=list)

    def error_dicts(self) -> List[Dict[str, Any]]:
        return [e.model_dump(exclude_none=True) for e in self.errors]

    def warning_dicts(self) -> List[Dict[str, Any]]:
        return [w.model_dump(exclude_none=True) for w in self.warnings]


# ============================================================================
# Process Instance Runtime Models
# ============================================================================

class HistoryEntry(BaseModel):
    """Immutable audit record of one executed transition"""
    model_config = ConfigDict(extra="ignore", frozen=True)

    from_state: Optional[str] = Field(None, description="Null only for the synthetic start entry")
    to_state: str
    action: str
    executed_by: str
    executed_at: datetime
    comments: Optional[str] = None
    data_delta: Dict[str, Any] = Field(default_factory=dict, description="Payload applied by this entry")
    system_generated: bool = False


class Comment(BaseModel):
    """Discussion entry on a process; kept apart from the audit history"""
    model_config = ConfigDict(extra="ignore", frozen=True)

    comment_id: str
    text: str
    attachments: List[str] = Field(default_factory=list, description="Attachment references (URLs or file ids)")
    created_by: str
    created_at: datetime


class StateInterval(BaseModel):
    """Time spent continuously in one state"""
    model_config = ConfigDict(extra="ignore")

    state: str
    entered_at: datetime
    exited_at: Optional[datetime] = None
    duration_seconds: float = 0.0

    @property
    def is_open(self) -> bool:
        return self.exited_at is None


class SlaState(BaseModel):
    """Deadline tracking and per-state dwell intervals"""
    model_config = ConfigDict(extra="ignore")

    deadline: Optional[datetime] = None
    status: SlaStatus = Field(default=SlaStatus.WITHIN)
    time_in_states: List[StateInterval] = Field(default_factory=list)
    evaluated_at: Optional[datetime] = None


class ProcessInstance(BaseModel):
    """One running execution of a workflow template version"""
    model_config = ConfigDict(extra="ignore")

    process_id: str = Field(..., description="Unique process ID")
    workflow_name: str
    workflow_version: int = Field(..., description="Exact version bound at start")
    title: Optional[str] = None
    description: Optional[str] = None
    current_state: str
    status: ProcessStatus = Field(default=ProcessStatus.ACTIVE)
    data: Dict[str, Any] = Field(default_factory=dict)
    priority: ProcessPriority = Field(default=ProcessPriority.MEDIUM)
    tags: List[str] = Field(default_factory=list)
    assigned_to: List[str] = Field(default_factory=list)
    watchers: List[str] = Field(default_factory=list, description="Users notified without being assigned")
    started_by: str
    started_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None
    canceled_at: Optional[datetime] = None
    history: List[HistoryEntry] = Field(default_factory=list)
    comments: List[Comment] = Field(default_factory=list)
    sla: SlaState = Field(default_factory=SlaState)
    revision: int = Field(default=1, description="Optimistic concurrency revision")

    @property
    def workflow_ref(self) -> Tuple[str, int]:
        return (self.workflow_name, self.workflow_version)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


class ProcessStats(BaseModel):
    """Instance counts, optionally scoped to one workflow or one participant"""
    total: int = 0
    by_status: Dict[str, int] = Field(default_factory=dict)
    by_state: Dict[str, int] = Field(default_factory=dict)
    by_priority: Dict[str, int] = Field(default_factory=dict)
    by_workflow: Dict[str, int] = Field(default_factory=dict)


# ============================================================================
# Notification Outbox
# ============================================================================

class NotificationOutbox(BaseModel):
    """Pending notification handed to the delivery collaborator"""
    model_config = ConfigDict(extra="ignore")

    notification_id: str
    process_id: str
    action: str
    from_state: Optional[str] = None
    to_state: str
    process_status: ProcessStatus
    recipients: List[str] = Field(default_factory=list)
    actor_id: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    status: NotificationStatus = Field(default=NotificationStatus.PENDING)
    created_at: datetime
