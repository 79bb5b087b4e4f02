"""Test helpers shared by unit and integration tests"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from procflow.domain.models import (
    HistoryEntry, NotificationOutbox, WorkflowDefinition, WorkflowDefinitionInput
)
from procflow.services.notification_service import NotificationService


START = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


class FixedClock:
    """Clock that only moves when told to"""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class RecordingNotifier(NotificationService):
    """Keeps every notification in memory; can be told to fail"""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: List[NotificationOutbox] = []

    def notify(self, process, entry, actor) -> Optional[NotificationOutbox]:
        if self.fail:
            raise RuntimeError("notifier is down")
        notification = self.build_notification(process, entry, actor)
        self.sent.append(notification)
        return notification


def build_template(
    states: List[Dict[str, Any]],
    name: str = "Purchase",
    version: int = 1,
    active: bool = True,
    fields: Optional[List[Dict[str, Any]]] = None,
    sla_minutes: Optional[int] = None
) -> WorkflowDefinition:
    """Stored template built straight from dicts (no validation)"""
    content = WorkflowDefinitionInput.model_validate({
        "name": name,
        "states": states,
        "fields": fields or [],
        "sla_minutes": sla_minutes,
    })
    return WorkflowDefinition(
        definition_id=f"WFD-{name.lower().replace(' ', '-')}-{version}",
        name=name,
        version=version,
        active=active,
        states=content.states,
        fields=content.fields,
        sla_minutes=content.sla_minutes,
        created_by="tests",
        created_at=START
    )


def purchase_states() -> List[Dict[str, Any]]:
    """Draft -> Review -> Approved | Rejected"""
    return [
        {
            "name": "Draft",
            "is_initial": True,
            "assigned_roles": ["Clerk"],
            "actions": [
                {
                    "name": "submit",
                    "target_state": "Review",
                    "allowed_roles": ["Clerk"],
                    "required_fields": ["amount"],
                }
            ],
        },
        {
            "name": "Review",
            "assigned_roles": ["Manager"],
            "actions": [
                {"name": "approve", "target_state": "Approved", "allowed_roles": ["Manager"]},
                {"name": "reject", "target_state": "Rejected", "allowed_roles": ["Manager"]},
            ],
        },
        {"name": "Approved", "is_final": True},
        {"name": "Rejected", "is_final": True},
    ]


def assert_history_chain(history: List[HistoryEntry]) -> None:
    assert history[0].from_state is None
    for previous, current in zip(history, history[1:]):
        assert previous.to_state == current.from_state
