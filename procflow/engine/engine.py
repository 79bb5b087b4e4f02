"""
Process Engine - The Brain of the System

This module contains the ProcessEngine class that starts process instances
and advances them through their bound workflow version.

=============================================================================
MODULE STRUCTURE
=============================================================================

1. INITIALIZATION
   - Constructor with repository, directory and notifier dependencies

2. PROCESS START
   - start_process: Bind a template version and enter its initial state

3. ACTION EXECUTION
   - execute_action: Validate, authorize, transition and persist
   - get_available_actions: Actions a role set may perform right now

4. QUERIES
   - get_process, list_processes, get_history, get_comments, get_sla
   - get_process_stats: Counts by status, state, priority and workflow

5. ADMINISTRATIVE OPERATIONS
   - cancel_process, suspend_process, resume_process
   - reassign_process, set_deadline, set_priority, refresh_sla
   - add_comment: Discussion thread separate from the audit history
   - bulk_action: One action over many processes, one result each

6. HELPERS
   - _mutate: Lock, load, apply, save (revision checked), notify
   - _notify: Best-effort notification

=============================================================================
DEPENDENCIES
=============================================================================

Repositories:
    - WorkflowDefinitionStore: Versioned templates (read-only here)
    - ProcessInstanceStore: Instances with optimistic concurrency

Services:
    - DirectoryService: Role -> user resolution for assignment
    - NotificationService: Best-effort notifications

Guards & Helpers:
    - WorkflowValidator: Structural and typed data checks
    - PermissionGuard: Role checks
    - ConditionEvaluator: Action conditions and required fields
    - ProcessStateMachine: Transitions on working copies
    - SlaTracker: Deadline status and dwell intervals
    - InstanceLockRegistry: One mutation per instance at a time

=============================================================================
"""

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from ..config.settings import settings
from ..domain.models import (
    ActorContext, ActionTemplate, Comment, HistoryEntry, ProcessInstance, ProcessStats,
    SlaState, StateTemplate, WorkflowDefinition
)
from ..domain.enums import InvalidStateKind, ProcessPriority, ProcessStatus, SystemAction
from ..domain.errors import (
    ActionNotAvailableError, DomainError, FieldTypeError, ForbiddenError, InvalidStateError,
    InvariantViolationError, MissingRequiredFieldsError, ValidationError
)
from ..repositories.base import WorkflowDefinitionStore, ProcessInstanceStore
from ..services.directory_service import DirectoryService
from ..services.notification_service import NotificationService
from ..utils.idgen import generate_comment_id, generate_process_id
from ..utils.time import utc_now
from ..utils.logger import get_logger
from .audit_writer import AuditWriter
from .condition_evaluator import ConditionEvaluator
from .instance_lock import InstanceLockRegistry
from .permission_guard import PermissionGuard
from .sla_tracker import SlaTracker
from .state_machine import ProcessStateMachine
from .workflow_validator import WorkflowValidator

logger = get_logger(__name__)


class ProcessEngine:
    """
    The Process Engine - Central orchestrator for all process operations

    Responsibilities:
    - Start instances bound to an exact template version
    - Control every transition through declared, role-gated actions
    - Keep history append-only and the SLA intervals closed on exit
    - Persist all-or-nothing with a per-instance lock and revision check
    - Notify collaborators without letting failures leak back
    """

    def __init__(
        self,
        workflow_repo: WorkflowDefinitionStore,
        process_repo: ProcessInstanceStore,
        directory: DirectoryService,
        notifier: Optional[NotificationService] = None,
        lock_registry: Optional[InstanceLockRegistry] = None,
        permission_guard: Optional[PermissionGuard] = None,
        sla_tracker: Optional[SlaTracker] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.workflow_repo = workflow_repo
        self.process_repo = process_repo
        self.directory = directory
        self.notifier = notifier
        self.lock_registry = lock_registry or InstanceLockRegistry()
        self.permission_guard = permission_guard or PermissionGuard()
        self.sla_tracker = sla_tracker or SlaTracker()
        self.validator = WorkflowValidator()
        self.condition_evaluator = ConditionEvaluator()
        self.state_machine = ProcessStateMachine(self.sla_tracker, AuditWriter())
        self.clock = clock or utc_now

    # =========================================================================
    # Process Start
    # =========================================================================

    def start_process(
        self,
        workflow_name: str,
        initial_data: Optional[Dict[str, Any]],
        actor: ActorContext,
        version: Optional[int] = None,
        title: Optional[str] = None,
        description: Optional[str] = None,
        priority: ProcessPriority = ProcessPriority.MEDIUM,
        tags: Optional[List[str]] = None,
        watchers: Optional[List[str]] = None
    ) -> ProcessInstance:
        """
        Start a new process from a template

        Algorithm:
        1. Resolve the exact version (or the active one)
        2. Refuse inactive templates
        3. Re-validate the template structure
        4. Check the initial state's required fields and the field schema
        5. Resolve assignees from the initial state's roles
        6. Build the instance with its synthetic start entry and persist
        7. Notify (best-effort)
        """
        initial_data = dict(initial_data or {})
        workflow = self.workflow_repo.find_or_raise(workflow_name, version)

        if not workflow.active:
            raise InvalidStateError(
                f"Workflow {workflow.name} version {workflow.version} is not active",
                details={
                    "kind": InvalidStateKind.WORKFLOW_INACTIVE.value,
                    "workflow_name": workflow.name,
                    "version": workflow.version
                }
            )

        validation = self.validator.validate(workflow)
        if not validation.is_valid:
            self._invariant_violation(
                f"Stored workflow {workflow.name} v{workflow.version} is not structurally valid",
                details={"errors": validation.error_dicts()},
                workflow=workflow
            )

        initial_state = workflow.get_initial_state()

        missing = self.condition_evaluator.find_missing_fields(initial_state.required_fields, initial_data)
        if missing:
            raise MissingRequiredFieldsError(missing, state=initial_state.name)

        self._check_field_types(workflow, initial_data)

        assigned_to = self.directory.resolve_assignees(initial_state.assigned_roles)

        now = self.clock()
        process = self.state_machine.start(
            process_id=generate_process_id(),
            workflow=workflow,
            initial_state=initial_state,
            initial_data=initial_data,
            actor=actor,
            assigned_to=assigned_to,
            now=now,
            title=title,
            description=description,
            priority=ProcessPriority(priority),
            tags=tags,
            watchers=watchers
        )

        self.process_repo.create(process)

        logger.info(
            f"Started process {process.process_id} from {workflow.name} v{workflow.version}",
            extra={
                "process_id": process.process_id,
                "workflow_name": workflow.name,
                "workflow_version": workflow.version,
                "actor_id": actor.actor_id,
                "state": process.current_state,
                "status": process.status.value
            }
        )

        self._notify(process, process.history[-1], actor)
        return process

    # =========================================================================
    # Action Execution
    # =========================================================================

    def execute_action(
        self,
        process_id: str,
        action_name: str,
        actor: ActorContext,
        payload: Optional[Dict[str, Any]] = None,
        comments: Optional[str] = None
    ) -> ProcessInstance:
        """
        Execute a template action on a process

        The per-instance lock is held for the whole call. Any failure before
        the save leaves the stored instance unchanged.
        """
        payload = dict(payload or {})

        with self.lock_registry.hold(process_id):
            process = self.process_repo.find_or_raise(process_id)

            if process.status != ProcessStatus.ACTIVE:
                raise InvalidStateError(
                    f"Process {process_id} is {process.status.value}",
                    details={
                        "kind": InvalidStateKind.PROCESS_NOT_ACTIVE.value,
                        "current_status": process.status.value
                    }
                )

            workflow = self._load_bound_workflow(process)
            current_state = self._get_state(workflow, process, process.current_state)

            action = current_state.get_action(action_name)
            if action is None:
                raise ActionNotAvailableError(
                    f"Action {action_name} is not available in state {process.current_state}",
                    details={"action": action_name, "state": process.current_state}
                )

            if not self.permission_guard.authorize(actor.roles, action.allowed_roles):
                logger.info(
                    f"Actor {actor.actor_id} may not perform {action_name} on {process_id}",
                    extra={"process_id": process_id, "action": action_name, "actor_id": actor.actor_id}
                )
                raise ForbiddenError(
                    f"You are not allowed to perform {action_name}",
                    details={"action": action_name, "allowed_roles": list(action.allowed_roles)}
                )

            if not self.condition_evaluator.evaluate(action.condition, process.data):
                raise ActionNotAvailableError(
                    f"Conditions for action {action_name} are not met",
                    details={"action": action_name, "state": process.current_state, "reason": "condition"}
                )

            missing = self.condition_evaluator.find_missing_fields(action.required_fields, payload)
            if missing:
                raise MissingRequiredFieldsError(missing, action=action_name)

            self._check_field_types(workflow, payload)

            target_state = self._get_state(workflow, process, action.target_state)

            updated = self.state_machine.apply_transition(
                process,
                action,
                target_state,
                actor,
                now=self.clock(),
                payload=payload,
                comments=comments
            )
            saved = self.process_repo.save(updated, expected_revision=process.revision)

        logger.info(
            f"Executed {action_name} on {process_id}: {process.current_state} -> {saved.current_state}",
            extra={
                "process_id": process_id,
                "workflow_name": saved.workflow_name,
                "workflow_version": saved.workflow_version,
                "action": action_name,
                "actor_id": actor.actor_id,
                "state": saved.current_state,
                "status": saved.status.value
            }
        )

        self._notify(saved, saved.history[-1], actor)
        return saved

    def get_available_actions(
        self,
        process_id: str,
        actor_roles: List[str]
    ) -> List[ActionTemplate]:
        """Actions of the current state the role set may perform (empty unless active)"""
        process = self.process_repo.find_or_raise(process_id)
        if process.status != ProcessStatus.ACTIVE:
            return []

        workflow = self._load_bound_workflow(process)
        state = self._get_state(workflow, process, process.current_state)

        permitted = self.permission_guard.filter_actions(actor_roles, state.actions)
        return [
            a for a in permitted
            if self.condition_evaluator.evaluate(a.condition, process.data)
        ]

    # =========================================================================
    # Queries
    # =========================================================================

    def get_process(self, process_id: str) -> ProcessInstance:
        return self.process_repo.find_or_raise(process_id)

    def list_processes(
        self,
        status: Optional[ProcessStatus] = None,
        workflow_name: Optional[str] = None,
        assigned_to: Optional[str] = None,
        started_by: Optional[str] = None,
        skip: int = 0,
        limit: int = 50
    ) -> List[ProcessInstance]:
        return self.process_repo.list_processes(
            status=status,
            workflow_name=workflow_name,
            assigned_to=assigned_to,
            started_by=started_by,
            skip=skip,
            limit=limit
        )

    def get_history(self, process_id: str) -> List[HistoryEntry]:
        return list(self.process_repo.find_or_raise(process_id).history)

    def get_comments(self, process_id: str) -> List[Comment]:
        return list(self.process_repo.find_or_raise(process_id).comments)

    def get_process_stats(
        self,
        actor: ActorContext,
        workflow_name: Optional[str] = None
    ) -> ProcessStats:
        """
        Count processes by status, current state, priority and workflow

        The super-role sees every process; anyone else only those they
        started or are assigned to.
        """
        participant = None if self.permission_guard.is_admin(actor) else actor.actor_id
        counts = {
            field: self.process_repo.count_by(field, workflow_name=workflow_name, participant=participant)
            for field in ("status", "current_state", "priority", "workflow_name")
        }
        return ProcessStats(
            total=sum(counts["status"].values()),
            by_status=counts["status"],
            by_state=counts["current_state"],
            by_priority=counts["priority"],
            by_workflow=counts["workflow_name"]
        )

    def get_sla(self, process_id: str) -> Dict[str, Any]:
        """Current SLA view (status recomputed for now, not persisted)"""
        process = self.process_repo.find_or_raise(process_id)
        now = self.clock()
        sla: SlaState = process.sla
        status = sla.status
        if process.status in (ProcessStatus.ACTIVE, ProcessStatus.SUSPENDED):
            status = self.sla_tracker.recompute_status(sla.deadline, now)
        return {
            "process_id": process.process_id,
            "deadline": sla.deadline,
            "status": status,
            "time_in_states": sla.time_in_states,
            "dwell": self.sla_tracker.dwell_summary(sla, now)
        }

    # =========================================================================
    # Administrative Operations
    # =========================================================================

    def cancel_process(
        self,
        process_id: str,
        actor: ActorContext,
        comments: Optional[str] = None
    ) -> ProcessInstance:
        """Cancel an active or suspended process (super-role only)"""

        def apply(process: ProcessInstance, now: datetime) -> ProcessInstance:
            self._require_admin(actor, "cancel")
            if process.is_terminal:
                raise self._terminal_error(process)
            return self.state_machine.cancel(process, actor, now, comments)

        return self._mutate(process_id, actor, apply, "cancel")

    def suspend_process(
        self,
        process_id: str,
        actor: ActorContext,
        comments: Optional[str] = None
    ) -> ProcessInstance:
        """Suspend an active process (super-role only)"""

        def apply(process: ProcessInstance, now: datetime) -> ProcessInstance:
            self._require_admin(actor, "suspend")
            if process.status != ProcessStatus.ACTIVE:
                raise InvalidStateError(
                    f"Process {process_id} is {process.status.value}",
                    details={
                        "kind": InvalidStateKind.PROCESS_NOT_ACTIVE.value,
                        "current_status": process.status.value
                    }
                )
            return self.state_machine.suspend(process, actor, now, comments)

        return self._mutate(process_id, actor, apply, "suspend")

    def resume_process(
        self,
        process_id: str,
        actor: ActorContext,
        comments: Optional[str] = None
    ) -> ProcessInstance:
        """Resume a suspended process (super-role only)"""

        def apply(process: ProcessInstance, now: datetime) -> ProcessInstance:
            self._require_admin(actor, "resume")
            if process.status != ProcessStatus.SUSPENDED:
                raise InvalidStateError(
                    f"Process {process_id} is not suspended",
                    details={
                        "kind": InvalidStateKind.PROCESS_NOT_SUSPENDED.value,
                        "current_status": process.status.value
                    }
                )
            return self.state_machine.resume(process, actor, now, comments)

        return self._mutate(process_id, actor, apply, "resume")

    def reassign_process(
        self,
        process_id: str,
        assignees: List[str],
        actor: ActorContext,
        comments: Optional[str] = None
    ) -> ProcessInstance:
        """Replace assigned_to (super-role or a current assignee)"""

        def apply(process: ProcessInstance, now: datetime) -> ProcessInstance:
            if not self.permission_guard.can_reassign(actor, process):
                raise ForbiddenError(
                    "Only an administrator or a current assignee can reassign this process",
                    details={"action": "reassign"}
                )
            if process.is_terminal:
                raise self._terminal_error(process)
            return self.state_machine.reassign(process, assignees, actor, now, comments)

        return self._mutate(process_id, actor, apply, "reassign")

    def set_deadline(
        self,
        process_id: str,
        deadline: Optional[datetime],
        actor: ActorContext,
        comments: Optional[str] = None
    ) -> ProcessInstance:
        """Set or clear the SLA deadline (super-role or the starter)"""

        def apply(process: ProcessInstance, now: datetime) -> ProcessInstance:
            if not self.permission_guard.can_set_deadline(actor, process):
                raise ForbiddenError(
                    "Only an administrator or the process starter can change the deadline",
                    details={"action": "set_deadline"}
                )
            if process.is_terminal:
                raise self._terminal_error(process)
            return self.state_machine.set_deadline(process, deadline, actor, now, comments)

        return self._mutate(process_id, actor, apply, "set_deadline")

    def set_priority(
        self,
        process_id: str,
        priority: ProcessPriority,
        actor: ActorContext,
        comments: Optional[str] = None
    ) -> ProcessInstance:
        """Change the priority (super-role or the starter)"""
        priority = ProcessPriority(priority)

        def apply(process: ProcessInstance, now: datetime) -> ProcessInstance:
            if not self.permission_guard.can_set_priority(actor, process):
                raise ForbiddenError(
                    "Only an administrator or the process starter can change the priority",
                    details={"action": SystemAction.SET_PRIORITY.value}
                )
            if process.is_terminal:
                raise self._terminal_error(process)
            return self.state_machine.set_priority(process, priority, actor, now, comments)

        return self._mutate(process_id, actor, apply, SystemAction.SET_PRIORITY.value)

    def add_comment(
        self,
        process_id: str,
        text: str,
        actor: ActorContext,
        attachments: Optional[List[str]] = None
    ) -> Comment:
        """
        Add a comment to the process thread

        Open to the super-role, the starter and current assignees, in any
        status. Returns the stored comment.
        """
        text = (text or "").strip()
        if not text:
            raise ValidationError("Comment text is required", details={"process_id": process_id})

        def apply(process: ProcessInstance, now: datetime) -> ProcessInstance:
            if not self.permission_guard.can_comment(actor, process):
                raise ForbiddenError(
                    "Only an administrator, the starter or an assignee can comment on this process",
                    details={"action": SystemAction.COMMENT.value}
                )
            comment = Comment(
                comment_id=generate_comment_id(),
                text=text,
                attachments=list(attachments or []),
                created_by=actor.actor_id,
                created_at=now
            )
            return self.state_machine.add_comment(process, comment, actor, now)

        saved = self._mutate(process_id, actor, apply, SystemAction.COMMENT.value)
        return saved.comments[-1]

    def bulk_action(
        self,
        process_ids: List[str],
        action_name: str,
        actor: ActorContext,
        payload: Optional[Dict[str, Any]] = None,
        comments: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """
        Apply one action to several processes

        cancel, suspend and resume go through the administrative operations;
        any other name is executed as a template action. Each process is
        locked, checked and saved on its own, so one failure does not stop
        the others. Returns one result per distinct id, in request order.
        """
        process_ids = list(dict.fromkeys(process_ids or []))
        if not process_ids:
            raise ValidationError("At least one process id is required", details={"action": action_name})
        if len(process_ids) > settings.bulk_action_limit:
            raise ValidationError(
                f"A bulk action accepts at most {settings.bulk_action_limit} processes",
                details={"action": action_name, "count": len(process_ids)}
            )

        administrative = {
            SystemAction.CANCEL.value: self.cancel_process,
            SystemAction.SUSPEND.value: self.suspend_process,
            SystemAction.RESUME.value: self.resume_process,
        }

        results: List[Dict[str, Any]] = []
        for process_id in process_ids:
            try:
                if action_name in administrative:
                    process = administrative[action_name](process_id, actor, comments=comments)
                else:
                    process = self.execute_action(process_id, action_name, actor, payload, comments)
            except DomainError as e:
                results.append({
                    "process_id": process_id,
                    "success": False,
                    "error": {"code": e.error_code, "message": e.message}
                })
                continue

            results.append({
                "process_id": process_id,
                "success": True,
                "status": process.status,
                "current_state": process.current_state
            })

        failed = sum(1 for r in results if not r["success"])
        logger.info(
            f"Bulk {action_name} over {len(results)} processes: {len(results) - failed} applied, {failed} failed",
            extra={"action": action_name, "actor_id": actor.actor_id}
        )
        return results

    def refresh_sla(self, process_id: str) -> ProcessInstance:
        """Recompute and persist SLA status; terminal processes are returned as-is"""
        with self.lock_registry.hold(process_id):
            process = self.process_repo.find_or_raise(process_id)
            if process.is_terminal:
                return process
            updated = self.state_machine.refresh_sla(process, self.clock())
            if updated.sla.status == process.sla.status:
                return process
            saved = self.process_repo.save(updated, expected_revision=process.revision)

        logger.info(
            f"SLA status of {process_id} is now {saved.sla.status.value}",
            extra={"process_id": process_id, "status": saved.sla.status.value}
        )
        return saved

    # =========================================================================
    # Helpers
    # =========================================================================

    def _mutate(
        self,
        process_id: str,
        actor: ActorContext,
        apply: Callable[[ProcessInstance, datetime], ProcessInstance],
        operation: str
    ) -> ProcessInstance:
        """Lock, load, apply on a copy, save with revision check, then notify"""
        with self.lock_registry.hold(process_id):
            process = self.process_repo.find_or_raise(process_id)
            updated = apply(process, self.clock())
            saved = self.process_repo.save(updated, expected_revision=process.revision)

        logger.info(
            f"{operation} applied to {process_id}",
            extra={
                "process_id": process_id,
                "action": operation,
                "actor_id": actor.actor_id,
                "status": saved.status.value
            }
        )
        self._notify(saved, saved.history[-1], actor)
        return saved

    def _notify(self, process: ProcessInstance, entry: HistoryEntry, actor: ActorContext) -> None:
        """Notification failures never propagate"""
        if self.notifier is None or not settings.notifications_enabled:
            return
        try:
            self.notifier.notify(process, entry, actor)
        except Exception as e:
            logger.error(
                f"Failed to notify for {process.process_id}: {e}",
                extra={"process_id": process.process_id, "action": entry.action}
            )

    def _load_bound_workflow(self, process: ProcessInstance) -> WorkflowDefinition:
        workflow = self.workflow_repo.find(process.workflow_name, process.workflow_version)
        if workflow is None:
            self._invariant_violation(
                f"Process {process.process_id} is bound to missing workflow "
                f"{process.workflow_name} v{process.workflow_version}",
                details={"process_id": process.process_id},
                process=process
            )
        return workflow

    def _get_state(
        self,
        workflow: WorkflowDefinition,
        process: ProcessInstance,
        state_name: str
    ) -> StateTemplate:
        state = workflow.get_state(state_name)
        if state is None:
            self._invariant_violation(
                f"State {state_name} is not declared by {workflow.name} v{workflow.version}",
                details={"process_id": process.process_id, "state": state_name},
                process=process
            )
        return state

    def _check_field_types(self, workflow: WorkflowDefinition, values: Dict[str, Any]) -> None:
        problems = self.validator.check_data(workflow, values)
        if problems:
            raise FieldTypeError(
                "; ".join(p["message"] for p in problems),
                details={"kind": "FieldType", "problems": problems}
            )

    def _require_admin(self, actor: ActorContext, operation: str) -> None:
        if not self.permission_guard.is_admin(actor):
            raise ForbiddenError(
                f"Only an administrator can {operation} a process",
                details={"action": operation}
            )

    def _terminal_error(self, process: ProcessInstance) -> InvalidStateError:
        return InvalidStateError(
            f"Process {process.process_id} is already {process.status.value}",
            details={
                "kind": InvalidStateKind.PROCESS_TERMINAL.value,
                "current_status": process.status.value
            }
        )

    def _invariant_violation(
        self,
        message: str,
        details: Dict[str, Any],
        process: Optional[ProcessInstance] = None,
        workflow: Optional[WorkflowDefinition] = None
    ) -> None:
        extra: Dict[str, Any] = {"error_code": InvariantViolationError.error_code}
        if process is not None:
            extra.update(process_id=process.process_id, workflow_name=process.workflow_name,
                         workflow_version=process.workflow_version)
        if workflow is not None:
            extra.update(workflow_name=workflow.name, workflow_version=workflow.version)
        logger.error(message, extra=extra)
        raise InvariantViolationError(message, details=details)
