"""
Script to validate a workflow template

Usage:
    python -m scripts.validate_workflow path/to/template.json
    python -m scripts.validate_workflow --stored "Purchase Request" [--version 2]
"""
import argparse
import json
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from pydantic import ValidationError as SchemaError

from procflow.domain.models import WorkflowDefinitionInput
from procflow.domain.errors import NotFoundError
from procflow.engine.workflow_validator import WorkflowValidator


def load_from_file(path: str) -> WorkflowDefinitionInput:
    with open(path, encoding="utf-8") as f:
        return WorkflowDefinitionInput.model_validate(json.load(f))


def load_from_store(name: str, version=None):
    from procflow.repositories.workflow_repo import MongoWorkflowRepository
    return MongoWorkflowRepository().find_or_raise(name, version)


def print_report(template, result) -> None:
    print(f"Workflow: {template.name}")
    print(f"States: {len(template.states)}  Fields: {len(template.fields)}")
    for state in template.states:
        flags = [f for f, on in (("initial", state.is_initial), ("final", state.is_final)) if on]
        suffix = f" ({', '.join(flags)})" if flags else ""
        print(f"  - {state.name}{suffix}")
        for action in state.actions:
            roles = ", ".join(action.allowed_roles) or "anyone"
            print(f"      {action.name} -> {action.target_state} [{roles}]")
    print()

    for issue in result.errors:
        print(f"ERROR   {issue.kind}: {issue.message}")
    for issue in result.warnings:
        print(f"WARNING {issue.kind}: {issue.message}")
    print()
    print("VALID" if result.is_valid else f"INVALID ({len(result.errors)} error(s))")


def main() -> int:
    parser = argparse.ArgumentParser(description="Validate a workflow template")
    parser.add_argument("path", nargs="?", help="JSON file with the template")
    parser.add_argument("--stored", help="Validate a stored workflow by name instead")
    parser.add_argument("--version", type=int, default=None, help="Stored version (default: active)")
    args = parser.parse_args()

    if not args.path and not args.stored:
        parser.error("give a JSON file or --stored NAME")

    try:
        if args.stored:
            template = load_from_store(args.stored, args.version)
        else:
            template = load_from_file(args.path)
    except (OSError, json.JSONDecodeError, SchemaError, NotFoundError) as e:
        print(f"Could not load template: {e}")
        return 2

    result = WorkflowValidator().validate(template)
    print_report(template, result)
    return 0 if result.is_valid else 1


if __name__ == "__main__":
    sys.exit(main())
