"""Service modules - Business logic layer"""
from .workflow_service import WorkflowService
from .directory_service import DirectoryService, MongoDirectoryService, StaticDirectoryService
from .notification_service import (
    NotificationService, OutboxNotificationService, LoggingNotificationService
)

__all__ = [
    "WorkflowService",
    "DirectoryService",
    "MongoDirectoryService",
    "StaticDirectoryService",
    "NotificationService",
    "OutboxNotificationService",
    "LoggingNotificationService",
]
