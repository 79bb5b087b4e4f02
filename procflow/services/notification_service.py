"""Notification Service - Hands transition events to the delivery pipeline

Delivery itself (email, chat) happens elsewhere; the engine only records
that something should be sent.
"""
from abc import ABC, abstractmethod
from typing import List, Optional

from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from ..domain.models import NotificationOutbox, ProcessInstance, HistoryEntry, ActorContext
from ..domain.enums import NotificationStatus
from ..domain.errors import NotificationError
from ..repositories.mongo_client import get_collection, NOTIFICATION_OUTBOX
from ..utils.idgen import generate_notification_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


class NotificationService(ABC):
    """Best-effort notifier; callers never let a failure here undo a transition"""

    @abstractmethod
    def notify(
        self,
        process: ProcessInstance,
        entry: HistoryEntry,
        actor: ActorContext
    ) -> Optional[NotificationOutbox]:
        """Announce that entry was applied to process"""

    def build_notification(
        self,
        process: ProcessInstance,
        entry: HistoryEntry,
        actor: ActorContext
    ) -> NotificationOutbox:
        # Everyone involved except whoever triggered the change
        recipients: List[str] = []
        for user_id in [*process.assigned_to, process.started_by, *process.watchers]:
            if user_id and user_id != actor.actor_id and user_id not in recipients:
                recipients.append(user_id)

        return NotificationOutbox(
            notification_id=generate_notification_id(),
            process_id=process.process_id,
            action=entry.action,
            from_state=entry.from_state,
            to_state=entry.to_state,
            process_status=process.status,
            recipients=recipients,
            actor_id=actor.actor_id,
            payload={
                "workflow_name": process.workflow_name,
                "workflow_version": process.workflow_version,
                "title": process.title,
                "comments": entry.comments,
            },
            status=NotificationStatus.PENDING,
            created_at=utc_now()
        )


class OutboxNotificationService(NotificationService):
    """Write notifications to the Mongo outbox for a delivery worker to pick up"""

    def __init__(self, collection: Optional[Collection] = None):
        self._outbox: Collection = (
            collection if collection is not None else get_collection(NOTIFICATION_OUTBOX)
        )

    def notify(
        self,
        process: ProcessInstance,
        entry: HistoryEntry,
        actor: ActorContext
    ) -> Optional[NotificationOutbox]:
        notification = self.build_notification(process, entry, actor)
        if not notification.recipients:
            return None

        doc = notification.model_dump()
        doc["_id"] = notification.notification_id
        try:
            self._outbox.insert_one(doc)
        except PyMongoError as e:
            raise NotificationError(
                f"Failed to enqueue notification for {process.process_id}: {e}",
                details={"process_id": process.process_id, "action": entry.action}
            )

        logger.info(
            f"Enqueued notification {notification.notification_id}",
            extra={"process_id": process.process_id, "action": entry.action}
        )
        return notification


class LoggingNotificationService(NotificationService):
    """Log notifications instead of storing them (development and memory backend)"""

    def notify(
        self,
        process: ProcessInstance,
        entry: HistoryEntry,
        actor: ActorContext
    ) -> Optional[NotificationOutbox]:
        notification = self.build_notification(process, entry, actor)
        logger.info(
            f"Notification for {process.process_id}: {entry.action} -> {entry.to_state} "
            f"(recipients: {', '.join(notification.recipients) or 'none'})",
            extra={
                "process_id": process.process_id,
                "action": entry.action,
                "state": entry.to_state,
                "status": process.status.value
            }
        )
        return notification
