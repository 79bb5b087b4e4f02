"""Mongo repository tests against mocked collections"""
from unittest.mock import MagicMock

import pytest
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from procflow.domain.enums import ProcessStatus
from procflow.domain.errors import (
    AlreadyExistsError, ConcurrencyError, ExternalServiceError, NotificationError,
    ProcessNotFoundError, WorkflowNotFoundError
)
from procflow.repositories.process_repo import MongoProcessRepository
from procflow.repositories.workflow_repo import MongoWorkflowRepository
from procflow.services.directory_service import MongoDirectoryService
from procflow.services.notification_service import OutboxNotificationService

from tests.support import build_template, purchase_states


@pytest.fixture
def collection():
    return MagicMock()


class TestMongoWorkflowRepository:

    def test_create_uses_definition_id_as_key(self, collection):
        template = build_template(purchase_states())

        MongoWorkflowRepository(collection).create(template)

        doc = collection.insert_one.call_args[0][0]
        assert doc["_id"] == template.definition_id
        assert doc["name"] == "Purchase"
        assert doc["version"] == 1

    def test_duplicate_version(self, collection):
        collection.insert_one.side_effect = DuplicateKeyError("dup")

        with pytest.raises(AlreadyExistsError):
            MongoWorkflowRepository(collection).create(build_template(purchase_states()))

    def test_find_active_picks_highest_version(self, collection):
        doc = build_template(purchase_states(), version=3).model_dump()
        doc["_id"] = "x"
        collection.find_one.return_value = doc

        found = MongoWorkflowRepository(collection).find_active("Purchase")

        assert found.version == 3
        collection.find_one.assert_called_once_with(
            {"name": "Purchase", "active": True}, sort=[("version", -1)]
        )

    def test_find_or_raise_unknown_version(self, collection):
        collection.find_one.return_value = None

        with pytest.raises(WorkflowNotFoundError):
            MongoWorkflowRepository(collection).find_or_raise("Purchase", 7)

    def test_set_active_unknown_version(self, collection):
        collection.find_one_and_update.return_value = None

        with pytest.raises(WorkflowNotFoundError):
            MongoWorkflowRepository(collection).set_active("Purchase", 2, True)

    def test_deactivate_others_is_one_update(self, collection):
        collection.update_many.return_value.modified_count = 1

        changed = MongoWorkflowRepository(collection).deactivate_others("Purchase", 3)

        assert changed == 1
        collection.update_many.assert_called_once_with(
            {"name": "Purchase", "version": {"$ne": 3}, "active": True},
            {"$set": {"active": False}}
        )


class TestMongoProcessRepository:

    @pytest.fixture
    def process(self, started):
        return started

    def test_save_filters_on_expected_revision(self, collection, process):
        stored = process.model_copy(update={"revision": 2}).model_dump()
        collection.find_one_and_replace.return_value = dict(stored, _id=process.process_id)

        saved = MongoProcessRepository(collection).save(process, expected_revision=1)

        assert saved.revision == 2
        query, doc = collection.find_one_and_replace.call_args[0]
        assert query == {"process_id": process.process_id, "revision": 1}
        assert doc["revision"] == 2
        assert collection.find_one_and_replace.call_args[1] == {"return_document": ReturnDocument.AFTER}

    def test_save_with_stale_revision(self, collection, process):
        collection.find_one_and_replace.return_value = None
        collection.find_one.return_value = {"process_id": process.process_id, "revision": 4}

        with pytest.raises(ConcurrencyError) as exc_info:
            MongoProcessRepository(collection).save(process, expected_revision=1)

        assert exc_info.value.details["current_revision"] == 4

    def test_save_of_missing_process(self, collection, process):
        collection.find_one_and_replace.return_value = None
        collection.find_one.return_value = None

        with pytest.raises(ProcessNotFoundError):
            MongoProcessRepository(collection).save(process, expected_revision=1)

    def test_list_builds_query_from_filters(self, collection):
        cursor = collection.find.return_value.sort.return_value.skip.return_value.limit
        cursor.return_value = []

        MongoProcessRepository(collection).list_processes(
            status=ProcessStatus.ACTIVE, assigned_to="bob", skip=10, limit=5
        )

        collection.find.assert_called_once_with({"status": "active", "assigned_to": "bob"})
        collection.find.return_value.sort.assert_called_once_with("updated_at", DESCENDING)
        collection.find.return_value.sort.return_value.skip.assert_called_once_with(10)
        cursor.assert_called_once_with(5)

    def test_count_by_groups_in_one_aggregation(self, collection):
        collection.aggregate.return_value = [{"_id": "active", "count": 4}, {"_id": "canceled", "count": 1}]

        counts = MongoProcessRepository(collection).count_by("status", workflow_name="Purchase", participant="bob")

        assert counts == {"active": 4, "canceled": 1}
        pipeline = collection.aggregate.call_args[0][0]
        assert pipeline[0] == {"$match": {
            "workflow_name": "Purchase",
            "$or": [{"assigned_to": "bob"}, {"started_by": "bob"}]
        }}
        assert pipeline[1] == {"$group": {"_id": "$status", "count": {"$sum": 1}}}

    def test_count_by_unknown_field(self, collection):
        with pytest.raises(ValueError):
            MongoProcessRepository(collection).count_by("data.amount")

        collection.aggregate.assert_not_called()


class TestMongoServices:

    def test_directory_query(self, collection):
        collection.find.return_value = [{"user_id": "bob"}, {"user_id": "dave"}, {}]

        users = MongoDirectoryService(collection).resolve_assignees(["Manager"])

        assert users == ["bob", "dave"]
        collection.find.assert_called_once_with(
            {"roles": {"$in": ["Manager"]}, "active": {"$ne": False}}, {"user_id": 1}
        )

    def test_directory_failure(self, collection):
        collection.find.side_effect = PyMongoError("down")

        with pytest.raises(ExternalServiceError):
            MongoDirectoryService(collection).resolve_assignees(["Manager"])

    def test_outbox_write(self, collection, started, manager):
        notification = OutboxNotificationService(collection).notify(started, started.history[0], manager)

        assert notification.recipients == ["alice"]
        doc = collection.insert_one.call_args[0][0]
        assert doc["_id"] == notification.notification_id
        assert doc["status"] == "PENDING"

    def test_outbox_skips_when_nobody_to_tell(self, collection, started, clerk):
        assert OutboxNotificationService(collection).notify(started, started.history[0], clerk) is None
        collection.insert_one.assert_not_called()

    def test_outbox_failure(self, collection, started, manager):
        collection.insert_one.side_effect = PyMongoError("down")

        with pytest.raises(NotificationError):
            OutboxNotificationService(collection).notify(started, started.history[0], manager)
