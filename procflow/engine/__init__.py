"""Process Engine - The brain of the system"""
from .engine import ProcessEngine
from .workflow_validator import WorkflowValidator
from .permission_guard import PermissionGuard
from .condition_evaluator import ConditionEvaluator
from .sla_tracker import SlaTracker
from .state_machine import ProcessStateMachine
from .audit_writer import AuditWriter
from .instance_lock import InstanceLockRegistry

__all__ = [
    "ProcessEngine",
    "WorkflowValidator",
    "PermissionGuard",
    "ConditionEvaluator",
    "SlaTracker",
    "ProcessStateMachine",
    "AuditWriter",
    "InstanceLockRegistry",
]
