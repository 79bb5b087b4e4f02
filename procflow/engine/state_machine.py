"""Process State Machine - Pure transitions over working copies of an instance"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..domain.models import (
    ProcessInstance, WorkflowDefinition, StateTemplate, ActionTemplate, ActorContext, Comment
)
from ..domain.enums import ProcessPriority, ProcessStatus, SystemAction
from .audit_writer import AuditWriter
from .sla_tracker import SlaTracker


class ProcessStateMachine:
    """
    Apply lifecycle changes to process instances

    Every method returns a deep copy; the instance passed in is never
    touched, so a failed save leaves the caller's view unchanged.
    Preconditions (status, permissions, required fields) are checked
    by the engine before these are called.
    """

    def __init__(self, sla_tracker: SlaTracker, audit_writer: AuditWriter):
        self.sla_tracker = sla_tracker
        self.audit_writer = audit_writer

    def start(
        self,
        process_id: str,
        workflow: WorkflowDefinition,
        initial_state: StateTemplate,
        initial_data: Dict[str, Any],
        actor: ActorContext,
        assigned_to: List[str],
        now: datetime,
        title: Optional[str] = None,
        description: Optional[str] = None,
        priority: ProcessPriority = ProcessPriority.MEDIUM,
        tags: Optional[List[str]] = None,
        watchers: Optional[List[str]] = None
    ) -> ProcessInstance:
        """Create a new instance bound to the exact template version"""
        process = ProcessInstance(
            process_id=process_id,
            workflow_name=workflow.name,
            workflow_version=workflow.version,
            title=title,
            description=description,
            current_state=initial_state.name,
            status=ProcessStatus.ACTIVE,
            data=dict(initial_data),
            priority=priority,
            tags=list(dict.fromkeys(tags or [])),
            assigned_to=list(assigned_to),
            watchers=list(dict.fromkeys(watchers or [])),
            started_by=actor.actor_id,
            started_at=now,
            updated_at=now,
            revision=1
        )
        process.history.append(
            self.audit_writer.write_start(initial_state.name, actor, now, initial_data)
        )

        process.sla.deadline = self.sla_tracker.calculate_deadline(now, workflow.sla_minutes)
        self.sla_tracker.open_interval(process.sla, initial_state.name, now)

        # Initial state may itself be final
        if initial_state.is_final:
            self._complete(process, now)

        self.sla_tracker.refresh(process.sla, now)
        return process

    def apply_transition(
        self,
        process: ProcessInstance,
        action: ActionTemplate,
        target_state: StateTemplate,
        actor: ActorContext,
        now: datetime,
        payload: Optional[Dict[str, Any]] = None,
        comments: Optional[str] = None
    ) -> ProcessInstance:
        """
        Move the instance along an action

        Merges the payload into data (shallow), closes the current SLA
        interval and opens one for the target, appends the history entry,
        and completes the instance when the target is final.
        """
        updated = process.model_copy(deep=True)
        payload = dict(payload or {})

        updated.data.update(payload)

        self.sla_tracker.close_open_interval(updated.sla, now)
        self.sla_tracker.open_interval(updated.sla, target_state.name, now)

        updated.history.append(self.audit_writer.write_transition(
            from_state=process.current_state,
            to_state=target_state.name,
            action_name=action.name,
            actor=actor,
            now=now,
            payload=payload,
            comments=comments
        ))
        updated.current_state = target_state.name

        if target_state.is_final:
            self._complete(updated, now)

        self.sla_tracker.refresh(updated.sla, now)
        updated.updated_at = now
        return updated

    def cancel(
        self,
        process: ProcessInstance,
        actor: ActorContext,
        now: datetime,
        comments: Optional[str] = None
    ) -> ProcessInstance:
        updated = self._system_change(process, SystemAction.CANCEL, actor, now, comments)
        updated.status = ProcessStatus.CANCELED
        updated.canceled_at = now
        self.sla_tracker.close_open_interval(updated.sla, now)
        return updated

    def suspend(
        self,
        process: ProcessInstance,
        actor: ActorContext,
        now: datetime,
        comments: Optional[str] = None
    ) -> ProcessInstance:
        updated = self._system_change(process, SystemAction.SUSPEND, actor, now, comments)
        updated.status = ProcessStatus.SUSPENDED
        return updated

    def resume(
        self,
        process: ProcessInstance,
        actor: ActorContext,
        now: datetime,
        comments: Optional[str] = None
    ) -> ProcessInstance:
        updated = self._system_change(process, SystemAction.RESUME, actor, now, comments)
        updated.status = ProcessStatus.ACTIVE
        return updated

    def reassign(
        self,
        process: ProcessInstance,
        assignees: List[str],
        actor: ActorContext,
        now: datetime,
        comments: Optional[str] = None
    ) -> ProcessInstance:
        comments = comments or f"Reassigned to {', '.join(assignees) or 'nobody'}"
        updated = self._system_change(process, SystemAction.REASSIGN, actor, now, comments)
        # Keep order, drop duplicates
        updated.assigned_to = list(dict.fromkeys(assignees))
        return updated

    def set_deadline(
        self,
        process: ProcessInstance,
        deadline: Optional[datetime],
        actor: ActorContext,
        now: datetime,
        comments: Optional[str] = None
    ) -> ProcessInstance:
        if comments is None:
            comments = f"Deadline set to {deadline.isoformat()}" if deadline else "Deadline cleared"
        updated = self._system_change(process, SystemAction.SET_DEADLINE, actor, now, comments)
        updated.sla.deadline = deadline
        self.sla_tracker.refresh(updated.sla, now)
        return updated

    def set_priority(
        self,
        process: ProcessInstance,
        priority: ProcessPriority,
        actor: ActorContext,
        now: datetime,
        comments: Optional[str] = None
    ) -> ProcessInstance:
        comments = comments or f"Priority changed to {priority.value}"
        updated = self._system_change(process, SystemAction.SET_PRIORITY, actor, now, comments)
        updated.priority = priority
        return updated

    def add_comment(
        self,
        process: ProcessInstance,
        comment: Comment,
        actor: ActorContext,
        now: datetime
    ) -> ProcessInstance:
        """Append to the comment thread; the history entry only points at it"""
        updated = self._system_change(
            process, SystemAction.COMMENT, actor, now, f"Comment {comment.comment_id} added"
        )
        updated.comments.append(comment)
        return updated

    def refresh_sla(self, process: ProcessInstance, now: datetime) -> ProcessInstance:
        """Recompute SLA status only (no history entry)"""
        updated = process.model_copy(deep=True)
        self.sla_tracker.refresh(updated.sla, now)
        updated.updated_at = now
        return updated

    def _system_change(
        self,
        process: ProcessInstance,
        action: SystemAction,
        actor: ActorContext,
        now: datetime,
        comments: Optional[str]
    ) -> ProcessInstance:
        updated = process.model_copy(deep=True)
        updated.history.append(
            self.audit_writer.write_system_action(process, action, actor, now, comments)
        )
        updated.updated_at = now
        return updated

    def _complete(self, process: ProcessInstance, now: datetime) -> None:
        process.status = ProcessStatus.COMPLETED
        process.completed_at = now
        self.sla_tracker.close_open_interval(process.sla, now)
