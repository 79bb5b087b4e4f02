"""
Scripts Module

Utility scripts for database setup and template checks.

Available scripts:
    - seed_data.py: Creates a sample workflow and directory users
    - validate_workflow.py: Validates a template file or stored workflow

Usage:
    python -m scripts.seed_data
    python -m scripts.validate_workflow template.json
"""
