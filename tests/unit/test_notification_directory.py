"""Directory and notification service tests"""
from procflow.config.settings import settings
from procflow.domain.enums import NotificationStatus, ProcessStatus
from procflow.services.directory_service import StaticDirectoryService
from procflow.services.notification_service import LoggingNotificationService


class TestStaticDirectory:

    def test_resolves_sorted_union_of_roles(self, directory):
        assert directory.resolve_assignees(["Manager", "Finance"]) == ["bob", "carol", "dave"]

    def test_no_roles_means_nobody(self, directory):
        assert directory.resolve_assignees([]) == []

    def test_unknown_role(self, directory):
        assert directory.resolve_assignees(["Auditor"]) == []

    def test_add_user(self):
        directory = StaticDirectoryService()
        directory.add_user("zed", ["Auditor", "Manager"])

        assert directory.resolve_assignees(["Auditor"]) == ["zed"]


class TestNotifications:

    def test_recipients_exclude_actor(self, engine, started, clerk, manager):
        engine.reassign_process(started.process_id, ["bob", "dave"], clerk)
        process = engine.get_process(started.process_id)

        notification = LoggingNotificationService().notify(process, process.history[-1], manager)

        assert notification.recipients == ["dave", "alice"]
        assert notification.action == "reassign"
        assert notification.process_status == ProcessStatus.ACTIVE
        assert notification.status == NotificationStatus.PENDING
        assert notification.payload["workflow_name"] == "Purchase"

    def test_engine_skips_notifier_when_disabled(self, engine, purchase_workflow, clerk, notifier, monkeypatch):
        monkeypatch.setattr(settings, "notifications_enabled", False)

        engine.start_process("Purchase", {}, clerk)

        assert notifier.sent == []
