"""Workflow Validator - Structural checks for templates and typed data checks for instances"""
from datetime import datetime
from typing import Any, Dict, List, Set, Union

from ..domain.models import (
    WorkflowDefinition, WorkflowDefinitionInput, ValidationIssue, ValidationResult,
    FieldDefinition
)
from ..domain.enums import StructuralErrorKind, StructuralWarningKind, FieldType
from ..domain.errors import StructuralError
from ..utils.time import parse_iso
from ..utils.logger import get_logger

logger = get_logger(__name__)

TemplateLike = Union[WorkflowDefinition, WorkflowDefinitionInput]


class WorkflowValidator:
    """
    Validate workflow templates before they are published or bound.

    Every violation is collected; nothing short-circuits. The validator
    has no side effects.
    """

    def validate(self, template: TemplateLike) -> ValidationResult:
        """
        Validate template structure

        Errors block publishing, warnings do not.
        """
        errors: List[ValidationIssue] = []
        warnings: List[ValidationIssue] = []

        states = list(template.states)
        if not states:
            errors.append(ValidationIssue(
                kind=StructuralErrorKind.NO_STATES.value,
                message="Workflow must have at least one state"
            ))
            return ValidationResult(is_valid=False, errors=errors, warnings=warnings)

        # Duplicate state names
        state_names: Set[str] = set()
        for state in states:
            if state.name in state_names:
                errors.append(ValidationIssue(
                    kind=StructuralErrorKind.DUPLICATE_STATE.value,
                    message=f"Duplicate state name: {state.name}",
                    state=state.name
                ))
            state_names.add(state.name)

        # Exactly one initial state
        initial = [s.name for s in states if s.is_initial]
        if len(initial) != 1:
            errors.append(ValidationIssue(
                kind=StructuralErrorKind.INITIAL_STATE_COUNT.value,
                message=f"Workflow must have exactly one initial state, found {len(initial)}"
            ))

        # Field schema
        field_keys: Set[str] = set()
        for field_def in template.fields:
            if field_def.key in field_keys:
                errors.append(ValidationIssue(
                    kind=StructuralErrorKind.DUPLICATE_FIELD.value,
                    message=f"Duplicate field key: {field_def.key}",
                    field=field_def.key
                ))
            field_keys.add(field_def.key)
        has_schema = bool(field_keys)

        for state in states:
            if has_schema:
                for key in state.required_fields:
                    if key.split(".")[0] not in field_keys:
                        errors.append(ValidationIssue(
                            kind=StructuralErrorKind.UNDECLARED_FIELD.value,
                            message=f"State {state.name} requires undeclared field {key}",
                            state=state.name,
                            field=key
                        ))

            if state.is_final and state.actions:
                errors.append(ValidationIssue(
                    kind=StructuralErrorKind.FINAL_STATE_HAS_ACTIONS.value,
                    message=f"Final state {state.name} cannot declare actions",
                    state=state.name
                ))

            action_names: Set[str] = set()
            for action in state.actions:
                if action.name in action_names:
                    errors.append(ValidationIssue(
                        kind=StructuralErrorKind.DUPLICATE_ACTION.value,
                        message=f"Duplicate action {action.name} in state {state.name}",
                        state=state.name,
                        action=action.name
                    ))
                action_names.add(action.name)

                if action.target_state not in state_names:
                    errors.append(ValidationIssue(
                        kind=StructuralErrorKind.DANGLING_TRANSITION.value,
                        message=(
                            f"Action {action.name} in state {state.name} targets "
                            f"unknown state {action.target_state}"
                        ),
                        state=state.name,
                        action=action.name,
                        target=action.target_state
                    ))

                if has_schema:
                    for key in action.required_fields:
                        if key.split(".")[0] not in field_keys:
                            errors.append(ValidationIssue(
                                kind=StructuralErrorKind.UNDECLARED_FIELD.value,
                                message=f"Action {action.name} requires undeclared field {key}",
                                state=state.name,
                                action=action.name,
                                field=key
                            ))

        # Warnings
        if not any(s.is_final for s in states):
            warnings.append(ValidationIssue(
                kind=StructuralWarningKind.NO_FINAL_STATE.value,
                message="Workflow has no final state; processes can never complete"
            ))

        if len(initial) == 1:
            reachable = self._find_reachable_states(initial[0], template)
            for state in states:
                if state.name not in reachable:
                    warnings.append(ValidationIssue(
                        kind=StructuralWarningKind.UNREACHABLE_STATE.value,
                        message=f"State {state.name} is not reachable from the initial state",
                        state=state.name
                    ))

        return ValidationResult(
            is_valid=len(errors) == 0,
            errors=errors,
            warnings=warnings
        )

    def ensure_valid(self, template: TemplateLike) -> ValidationResult:
        """Validate and raise StructuralError carrying every issue when invalid"""
        result = self.validate(template)
        if not result.is_valid:
            logger.info(
                f"Workflow {template.name} failed validation with {len(result.errors)} error(s)",
                extra={"workflow_name": template.name}
            )
            raise StructuralError(
                f"Workflow {template.name} is not structurally valid",
                errors=result.error_dicts(),
                warnings=result.warning_dicts()
            )
        return result

    def _find_reachable_states(self, initial_state: str, template: TemplateLike) -> Set[str]:
        """Find all states reachable from the initial state"""
        transitions: Dict[str, List[str]] = {}
        for state in template.states:
            transitions.setdefault(state.name, []).extend(a.target_state for a in state.actions)

        reachable = {initial_state}
        to_visit = [initial_state]
        while to_visit:
            current = to_visit.pop()
            for target in transitions.get(current, []):
                if target not in reachable:
                    reachable.add(target)
                    to_visit.append(target)
        return reachable

    # =========================================================================
    # Typed data checks
    # =========================================================================

    def check_data(self, template: TemplateLike, data: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        Check submitted values against the template's field schema

        Returns a list of problems ({field, expected, message}); empty when the
        template declares no schema. None values are left to required-field checks.
        """
        if not template.fields:
            return []

        field_map = {f.key: f for f in template.fields}
        problems: List[Dict[str, Any]] = []

        for key, value in data.items():
            field_def = field_map.get(key)
            if field_def is None:
                problems.append({
                    "field": key,
                    "expected": None,
                    "message": f"Field {key} is not declared by workflow {template.name}"
                })
                continue

            if value is None:
                continue

            if not self._matches_type(field_def, value):
                problems.append({
                    "field": key,
                    "expected": field_def.field_type.value,
                    "message": f"Field {key} must be of type {field_def.field_type.value}"
                })

        return problems

    def _matches_type(self, field_def: FieldDefinition, value: Any) -> bool:
        field_type = field_def.field_type

        if field_type == FieldType.TEXT:
            return isinstance(value, str)

        if field_type == FieldType.NUMBER:
            return isinstance(value, (int, float)) and not isinstance(value, bool)

        if field_type == FieldType.BOOLEAN:
            return isinstance(value, bool)

        if field_type == FieldType.DATE:
            if isinstance(value, datetime):
                return True
            if not isinstance(value, str):
                return False
            try:
                parse_iso(value)
            except (ValueError, OverflowError):
                return False
            return True

        if field_type == FieldType.SELECT:
            if isinstance(value, (list, dict)):
                return False
            return not field_def.options or value in field_def.options

        if field_type == FieldType.MULTISELECT:
            if not isinstance(value, list):
                return False
            return not field_def.options or all(v in field_def.options for v in value)

        if field_type == FieldType.OBJECT:
            return isinstance(value, dict)

        if field_type == FieldType.LIST:
            return isinstance(value, list)

        return False
