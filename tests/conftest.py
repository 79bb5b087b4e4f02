"""
Pytest Configuration and Fixtures

This file contains shared fixtures and configuration for all tests.
Settings are read at import time, so the environment is prepared before
anything from procflow is imported.
"""

import os
import tempfile

os.environ.setdefault("REPOSITORY_BACKEND", "memory")
os.environ.setdefault("LOGS_PATH", tempfile.mkdtemp(prefix="procflow-logs-"))
os.environ.setdefault("ENVIRONMENT", "test")

import pytest

from procflow.domain.models import ActorContext, ProcessInstance, WorkflowDefinition
from procflow.engine.engine import ProcessEngine
from procflow.engine.instance_lock import InstanceLockRegistry
from procflow.repositories.memory import InMemoryWorkflowRepository, InMemoryProcessRepository
from procflow.services.directory_service import StaticDirectoryService
from procflow.services.workflow_service import WorkflowService

from tests.support import FixedClock, RecordingNotifier, build_template, purchase_states


# ============================================================================
# Actors
# ============================================================================

@pytest.fixture
def clerk() -> ActorContext:
    return ActorContext(actor_id="alice", display_name="Alice", roles=["Clerk"])


@pytest.fixture
def manager() -> ActorContext:
    return ActorContext(actor_id="bob", display_name="Bob", roles=["Manager"])


@pytest.fixture
def admin() -> ActorContext:
    return ActorContext(actor_id="root", display_name="Root", roles=["Admin"])


@pytest.fixture
def stranger() -> ActorContext:
    return ActorContext(actor_id="eve", display_name="Eve", roles=["Visitor"])


# ============================================================================
# Collaborators
# ============================================================================

@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def workflow_repo() -> InMemoryWorkflowRepository:
    return InMemoryWorkflowRepository()


@pytest.fixture
def process_repo() -> InMemoryProcessRepository:
    return InMemoryProcessRepository()


@pytest.fixture
def directory() -> StaticDirectoryService:
    return StaticDirectoryService({
        "Clerk": ["alice"],
        "Manager": ["bob", "dave"],
        "Finance": ["carol"],
    })


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def engine(workflow_repo, process_repo, directory, notifier, clock) -> ProcessEngine:
    return ProcessEngine(
        workflow_repo=workflow_repo,
        process_repo=process_repo,
        directory=directory,
        notifier=notifier,
        lock_registry=InstanceLockRegistry(timeout_seconds=5),
        clock=clock
    )


@pytest.fixture
def workflow_service(workflow_repo, clock) -> WorkflowService:
    return WorkflowService(workflow_repo, clock=clock)


@pytest.fixture
def purchase_workflow(workflow_repo) -> WorkflowDefinition:
    return workflow_repo.create(build_template(purchase_states()))


@pytest.fixture
def started(engine, purchase_workflow, clerk) -> ProcessInstance:
    return engine.start_process("Purchase", {}, clerk, title="Laptop")
