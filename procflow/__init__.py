"""procflow - versioned workflow templates and role-gated process execution"""

__version__ = "1.0.0"
