"""Data access layer - MongoDB and in-memory repositories"""
from .base import WorkflowDefinitionStore, ProcessInstanceStore
from .memory import InMemoryWorkflowRepository, InMemoryProcessRepository
from .workflow_repo import MongoWorkflowRepository
from .process_repo import MongoProcessRepository

__all__ = [
    "WorkflowDefinitionStore",
    "ProcessInstanceStore",
    "InMemoryWorkflowRepository",
    "InMemoryProcessRepository",
    "MongoWorkflowRepository",
    "MongoProcessRepository",
]
