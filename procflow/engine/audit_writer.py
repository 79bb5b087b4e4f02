"""Audit Writer - Builds append-only history entries"""
from datetime import datetime
from typing import Any, Dict, Optional

from ..domain.models import HistoryEntry, ActorContext, ProcessInstance
from ..domain.enums import SystemAction


class AuditWriter:
    """
    Build immutable history entries

    Every state change and administrative operation produces exactly one
    entry. Administrative entries keep from_state == to_state so the chain
    history[i].to_state == history[i+1].from_state always holds.
    """

    def write_start(
        self,
        initial_state: str,
        actor: ActorContext,
        now: datetime,
        data: Optional[Dict[str, Any]] = None
    ) -> HistoryEntry:
        """Synthetic entry recorded when a process is started"""
        return HistoryEntry(
            from_state=None,
            to_state=initial_state,
            action=SystemAction.START.value,
            executed_by=actor.actor_id,
            executed_at=now,
            comments="Process started",
            data_delta=dict(data or {}),
            system_generated=True
        )

    def write_transition(
        self,
        from_state: str,
        to_state: str,
        action_name: str,
        actor: ActorContext,
        now: datetime,
        payload: Optional[Dict[str, Any]] = None,
        comments: Optional[str] = None
    ) -> HistoryEntry:
        return HistoryEntry(
            from_state=from_state,
            to_state=to_state,
            action=action_name,
            executed_by=actor.actor_id,
            executed_at=now,
            comments=comments,
            data_delta=dict(payload or {})
        )

    def write_system_action(
        self,
        process: ProcessInstance,
        action: SystemAction,
        actor: ActorContext,
        now: datetime,
        comments: Optional[str] = None
    ) -> HistoryEntry:
        """Administrative entry (cancel, suspend, resume, reassign, deadline, priority, comment)"""
        return HistoryEntry(
            from_state=process.current_state,
            to_state=process.current_state,
            action=action.value,
            executed_by=actor.actor_id,
            executed_at=now,
            comments=comments,
            system_generated=True
        )
