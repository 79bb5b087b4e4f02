"""Domain Enumerations - All status and type definitions"""
from enum import Enum


class ProcessStatus(str, Enum):
    """Lifecycle status of a process instance (orthogonal to current_state)"""
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELED = "canceled"
    SUSPENDED = "suspended"

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessStatus.COMPLETED, ProcessStatus.CANCELED)


class ProcessPriority(str, Enum):
    """Triage priority of a process instance"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class SlaStatus(str, Enum):
    """Deadline status derived from deadline - now"""
    WITHIN = "within"
    AT_RISK = "atrisk"
    OVERDUE = "overdue"


class SystemAction(str, Enum):
    """Action names recorded by the engine itself (not template actions)"""
    START = "start"
    CANCEL = "cancel"
    SUSPEND = "suspend"
    RESUME = "resume"
    REASSIGN = "reassign"
    SET_DEADLINE = "set_deadline"
    SET_PRIORITY = "set_priority"
    COMMENT = "comment"


class StructuralErrorKind(str, Enum):
    """Template well-formedness violations"""
    NO_STATES = "NO_STATES"
    INITIAL_STATE_COUNT = "INITIAL_STATE_COUNT"
    DANGLING_TRANSITION = "DANGLING_TRANSITION"
    DUPLICATE_STATE = "DUPLICATE_STATE"
    DUPLICATE_ACTION = "DUPLICATE_ACTION"
    DUPLICATE_FIELD = "DUPLICATE_FIELD"
    UNDECLARED_FIELD = "UNDECLARED_FIELD"
    FINAL_STATE_HAS_ACTIONS = "FINAL_STATE_HAS_ACTIONS"


class StructuralWarningKind(str, Enum):
    """Template issues that do not block publishing"""
    UNREACHABLE_STATE = "UNREACHABLE_STATE"
    NO_FINAL_STATE = "NO_FINAL_STATE"


class InvalidStateKind(str, Enum):
    """Why an operation is not allowed in the current lifecycle status"""
    PROCESS_NOT_ACTIVE = "ProcessNotActive"
    PROCESS_NOT_SUSPENDED = "ProcessNotSuspended"
    PROCESS_TERMINAL = "ProcessTerminal"
    WORKFLOW_INACTIVE = "WorkflowInactive"


class FieldType(str, Enum):
    """Declared types for process data keys"""
    TEXT = "TEXT"
    NUMBER = "NUMBER"
    BOOLEAN = "BOOLEAN"
    DATE = "DATE"
    SELECT = "SELECT"
    MULTISELECT = "MULTISELECT"
    OBJECT = "OBJECT"
    LIST = "LIST"


class ConditionOperator(str, Enum):
    """Operators for condition evaluation"""
    EQUALS = "EQUALS"
    NOT_EQUALS = "NOT_EQUALS"
    GREATER_THAN = "GREATER_THAN"
    LESS_THAN = "LESS_THAN"
    CONTAINS = "CONTAINS"
    IN = "IN"
    NOT_IN = "NOT_IN"
    EXISTS = "EXISTS"
    NOT_EXISTS = "NOT_EXISTS"


class NotificationStatus(str, Enum):
    """Notification outbox status (delivery is handled outside the engine)"""
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"
