"""ID Generation Utilities"""
import uuid
from datetime import datetime, timezone
from typing import Optional


def generate_id(prefix: Optional[str] = None) -> str:
    """
    Generate a unique ID with optional prefix

    Args:
        prefix: Optional prefix for the ID (e.g., 'PRC', 'WFD')

    Returns:
        Unique ID string

    Examples:
        >>> generate_id('PRC')
        'PRC-a1b2c3d4e5f6'
        >>> generate_id()
        'a1b2c3d4e5f6'
    """
    unique_part = uuid.uuid4().hex[:12]

    if prefix:
        return f"{prefix}-{unique_part}"
    return unique_part


def generate_process_id() -> str:
    """Generate process instance ID"""
    return generate_id("PRC")


def generate_definition_id() -> str:
    """Generate workflow definition (name + version) ID"""
    return generate_id("WFD")


def generate_notification_id() -> str:
    """Generate notification ID"""
    return generate_id("NTF")


def generate_comment_id() -> str:
    """Generate process comment ID"""
    return generate_id("CMT")


def generate_correlation_id() -> str:
    """
    Generate a correlation ID for request tracing

    Returns:
        Correlation ID string with timestamp prefix
    """
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    unique_part = uuid.uuid4().hex[:8]
    return f"COR-{timestamp}-{unique_part}"
