"""Workflow service tests"""
import pytest

from procflow.domain.models import WorkflowDefinitionInput
from procflow.repositories.memory import InMemoryWorkflowRepository
from procflow.services.workflow_service import WorkflowService
from procflow.domain.errors import (
    AlreadyExistsError, ForbiddenError, StructuralError, ValidationError, WorkflowNotFoundError
)

from tests.support import START, purchase_states


def purchase_input(name="Purchase", **overrides):
    content = {"name": name, "states": purchase_states(), "sla_minutes": 120}
    content.update(overrides)
    return WorkflowDefinitionInput.model_validate(content)


class ActiveWatchingRepository(InMemoryWorkflowRepository):
    """Records which version is active after every activation write"""

    def __init__(self):
        super().__init__()
        self.active_after_write = []

    def set_active(self, name, version, active):
        updated = super().set_active(name, version, active)
        self.active_after_write.append(self.find_active(name))
        return updated

    def deactivate_others(self, name, keep_version):
        changed = super().deactivate_others(name, keep_version)
        self.active_after_write.append(self.find_active(name))
        return changed


class TestCreate:

    def test_create_publishes_active_version_one(self, workflow_service, admin):
        created = workflow_service.create_workflow(purchase_input(), admin)

        assert created.version == 1
        assert created.active
        assert created.definition_id.startswith("WFD-")
        assert created.created_by == "root"
        assert created.created_at == START
        assert workflow_service.get_active("Purchase") == created

    def test_name_must_be_new(self, workflow_service, admin):
        workflow_service.create_workflow(purchase_input(), admin)

        with pytest.raises(AlreadyExistsError):
            workflow_service.create_workflow(purchase_input(), admin)

    def test_structurally_invalid_template_is_refused(self, workflow_service, workflow_repo, admin):
        states = purchase_states()
        states[1]["actions"][0]["target_state"] = "Archived"

        with pytest.raises(StructuralError) as exc_info:
            workflow_service.create_workflow(purchase_input(states=states), admin)

        assert exc_info.value.kinds == ["DANGLING_TRANSITION"]
        assert workflow_repo.list_versions("Purchase") == []

    def test_requires_admin(self, workflow_service, manager):
        with pytest.raises(ForbiddenError):
            workflow_service.create_workflow(purchase_input(), manager)

    def test_validate_only_does_not_save(self, workflow_service, workflow_repo):
        result = workflow_service.validate(purchase_input())

        assert result.is_valid
        assert workflow_repo.list_active() == []


class TestVersions:

    def test_edit_publishes_new_active_version(self, workflow_service, admin):
        workflow_service.create_workflow(purchase_input(), admin)

        v2 = workflow_service.create_version("Purchase", purchase_input(sla_minutes=60), admin)

        assert v2.version == 2
        assert v2.active
        versions = workflow_service.list_versions("Purchase")
        assert [(v.version, v.active) for v in versions] == [(1, False), (2, True)]
        assert workflow_service.get_version("Purchase", 1).sla_minutes == 120

    def test_rename_through_edit_is_refused(self, workflow_service, admin):
        workflow_service.create_workflow(purchase_input(), admin)

        with pytest.raises(ValidationError):
            workflow_service.create_version("Purchase", purchase_input(name="Other"), admin)

    def test_edit_of_unknown_workflow(self, workflow_service, admin):
        with pytest.raises(WorkflowNotFoundError):
            workflow_service.create_version("Purchase", purchase_input(), admin)

    def test_invalid_edit_keeps_current_version_active(self, workflow_service, admin):
        workflow_service.create_workflow(purchase_input(), admin)
        states = purchase_states()
        states[0]["is_initial"] = False

        with pytest.raises(StructuralError):
            workflow_service.create_version("Purchase", purchase_input(states=states), admin)

        assert workflow_service.get_active("Purchase").version == 1

    def test_reactivate_old_version(self, workflow_service, admin):
        workflow_service.create_workflow(purchase_input(), admin)
        workflow_service.create_version("Purchase", purchase_input(), admin)

        workflow_service.set_active("Purchase", 1, True, admin)

        assert [v.active for v in workflow_service.list_versions("Purchase")] == [True, False]

    def test_deactivate_leaves_no_active_version(self, workflow_service, admin):
        workflow_service.create_workflow(purchase_input(), admin)

        workflow_service.set_active("Purchase", 1, False, admin)

        with pytest.raises(WorkflowNotFoundError):
            workflow_service.get_active("Purchase")
        assert workflow_service.list_workflows() == []

    def test_publishing_never_leaves_a_gap(self, clock, admin):
        repo = ActiveWatchingRepository()
        service = WorkflowService(repo, clock=clock)
        service.create_workflow(purchase_input(), admin)

        service.create_version("Purchase", purchase_input(), admin)

        assert all(active is not None for active in repo.active_after_write)
        assert repo.active_after_write[-1].version == 2

    def test_reactivation_never_leaves_a_gap(self, clock, admin):
        repo = ActiveWatchingRepository()
        service = WorkflowService(repo, clock=clock)
        service.create_workflow(purchase_input(), admin)
        service.create_version("Purchase", purchase_input(), admin)
        repo.active_after_write.clear()

        service.set_active("Purchase", 1, True, admin)

        assert all(active is not None for active in repo.active_after_write)
        assert repo.active_after_write[-1].version == 1
        assert [v.active for v in repo.list_versions("Purchase")] == [True, False]

    def test_list_versions_of_unknown_workflow(self, workflow_service):
        with pytest.raises(WorkflowNotFoundError):
            workflow_service.list_versions("Nope")


class TestClone:

    def test_clone_copies_active_version(self, workflow_service, admin):
        workflow_service.create_workflow(purchase_input(), admin)
        workflow_service.create_version("Purchase", purchase_input(sla_minutes=30), admin)

        clone = workflow_service.clone_workflow("Purchase", "Purchase EU", admin)

        assert clone.name == "Purchase EU"
        assert clone.version == 1
        assert clone.sla_minutes == 30
        assert clone.state_names == workflow_service.get_active("Purchase").state_names

    def test_clone_specific_version(self, workflow_service, admin):
        workflow_service.create_workflow(purchase_input(), admin)
        workflow_service.create_version("Purchase", purchase_input(sla_minutes=30), admin)

        clone = workflow_service.clone_workflow("Purchase", "Purchase EU", admin, version=1)

        assert clone.sla_minutes == 120

    def test_clone_onto_existing_name(self, workflow_service, admin):
        workflow_service.create_workflow(purchase_input(), admin)
        workflow_service.create_workflow(purchase_input(name="Other"), admin)

        with pytest.raises(AlreadyExistsError):
            workflow_service.clone_workflow("Purchase", "Other", admin)

    def test_list_workflows_returns_active_versions(self, workflow_service, admin):
        workflow_service.create_workflow(purchase_input(), admin)
        workflow_service.clone_workflow("Purchase", "Alpha", admin)

        assert [w.name for w in workflow_service.list_workflows()] == ["Alpha", "Purchase"]
