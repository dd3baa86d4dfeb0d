"""Structural validation of raw modal submission payloads."""

from collections.abc import Mapping
from typing import assert_never

from modal_sessions.domain.scope import MAX_CUSTOM_ID_LENGTH
from modal_sessions.domain.submissions import (
    SELECT_KINDS,
    ContainerKind,
    FieldKind,
    SubmittedField,
    ValidationResult,
)

MAX_TEXT_INPUT_LENGTH = 4000
MAX_SELECT_VALUES = 25
MAX_FILE_UPLOAD_VALUES = 10


class _InvalidSubmission(Exception):
    """Internal signal carrying the first validation failure."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


def validate_submission(payload: object) -> ValidationResult:
    """Validate a raw Discord modal submit interaction.

    The payload is untrusted JSON. Every defect is reported as a failed
    result; the first violation found wins.
    """
    result, _ = read_submission(payload)
    return result


def read_submission(
    payload: object,
) -> tuple[ValidationResult, list[SubmittedField]]:
    """Validate a payload and return its typed leaf fields when valid."""
    try:
        fields = _collect_fields(payload)
    except _InvalidSubmission as exc:
        return ValidationResult.failure(exc.reason), []
    return ValidationResult.success(), fields


def _collect_fields(payload: object) -> list[SubmittedField]:
    data = payload.get("data") if isinstance(payload, Mapping) else None
    if not isinstance(data, Mapping):
        raise _InvalidSubmission("modal interaction data is missing")

    custom_id = data.get("custom_id")
    if not _is_valid_custom_id(custom_id):
        raise _InvalidSubmission("modal custom id is missing or too long")

    raw_components = data.get("components")
    if not isinstance(raw_components, list) or not raw_components:
        raise _InvalidSubmission("modal submission has no top-level components")

    entries = flatten_components(raw_components)
    if not entries:
        raise _InvalidSubmission("modal submission has no components")

    attachment_ids = _resolved_attachment_ids(data)
    seen_ids: set[str] = set()
    fields: list[SubmittedField] = []
    for entry in entries:
        if not isinstance(entry, Mapping):
            raise _InvalidSubmission(
                "modal submission contains an invalid component entry"
            )
        field_id = entry.get("custom_id")
        if not isinstance(field_id, str) or not _is_valid_custom_id(field_id):
            raise _InvalidSubmission("component custom id is missing or too long")
        component_type = entry.get("type")
        if not isinstance(component_type, int) or isinstance(component_type, bool):
            raise _InvalidSubmission(
                "modal submission contains an invalid component entry"
            )
        if field_id in seen_ids:
            raise _InvalidSubmission("duplicate component custom id in payload")
        seen_ids.add(field_id)

        try:
            kind = FieldKind(component_type)
        except ValueError:
            raise _InvalidSubmission("unsupported modal component type") from None
        fields.append(_read_field(kind, field_id, entry, attachment_ids))
    return fields


def flatten_components(components: list[object]) -> list[object]:
    """Unwrap action rows and labels into their child components."""
    flattened: list[object] = []
    for component in components:
        if not isinstance(component, Mapping):
            continue
        component_type = component.get("type")
        if component_type == ContainerKind.ACTION_ROW:
            children = component.get("components")
            if isinstance(children, list):
                flattened.extend(children)
        elif component_type == ContainerKind.LABEL:
            if "component" in component:
                flattened.append(component["component"])
    return flattened


def _read_field(
    kind: FieldKind,
    field_id: str,
    entry: Mapping[str, object],
    attachment_ids: frozenset[str],
) -> SubmittedField:
    match kind:
        case FieldKind.TEXT_INPUT:
            value = entry.get("value")
            if not isinstance(value, str) or len(value) > MAX_TEXT_INPUT_LENGTH:
                raise _InvalidSubmission("text input value is invalid")
            return SubmittedField(kind, field_id, value)
        case (
            FieldKind.STRING_SELECT
            | FieldKind.USER_SELECT
            | FieldKind.ROLE_SELECT
            | FieldKind.MENTIONABLE_SELECT
            | FieldKind.CHANNEL_SELECT
            | FieldKind.CHECKBOX_GROUP
        ):
            values = _read_string_list(entry)
            if values is None:
                raise _InvalidSubmission("select values are invalid")
            if len(values) > MAX_SELECT_VALUES:
                reason = (
                    "select values exceed allowed limit"
                    if kind in SELECT_KINDS
                    else "checkbox group values exceed allowed limit"
                )
                raise _InvalidSubmission(reason)
            return SubmittedField(kind, field_id, values)
        case FieldKind.FILE_UPLOAD:
            values = _read_string_list(entry)
            if not values:
                raise _InvalidSubmission("file upload values are invalid")
            if len(values) > MAX_FILE_UPLOAD_VALUES:
                raise _InvalidSubmission("file upload contains too many attachment ids")
            for attachment_id in values:
                if not attachment_id:
                    raise _InvalidSubmission("file upload attachment id is invalid")
                if attachment_id not in attachment_ids:
                    raise _InvalidSubmission("file upload attachment id is unresolved")
            return SubmittedField(kind, field_id, values)
        case FieldKind.RADIO_GROUP:
            value = entry.get("value")
            if value is not None and not isinstance(value, str):
                raise _InvalidSubmission("radio group value is invalid")
            return SubmittedField(kind, field_id, value)
        case FieldKind.CHECKBOX:
            value = entry.get("value")
            if not isinstance(value, bool):
                raise _InvalidSubmission("checkbox value is invalid")
            return SubmittedField(kind, field_id, value)
        case _:
            assert_never(kind)


def _read_string_list(entry: Mapping[str, object]) -> list[str] | None:
    values = entry.get("values")
    if not isinstance(values, list):
        return None
    if not all(isinstance(value, str) for value in values):
        return None
    return list(values)


def _resolved_attachment_ids(data: Mapping[str, object]) -> frozenset[str]:
    resolved = data.get("resolved")
    if not isinstance(resolved, Mapping):
        return frozenset()
    attachments = resolved.get("attachments")
    if not isinstance(attachments, Mapping):
        return frozenset()
    return frozenset(
        attachment_id
        for attachment_id, attachment in attachments.items()
        if isinstance(attachment_id, str) and attachment
    )


def _is_valid_custom_id(value: object) -> bool:
    return isinstance(value, str) and 0 < len(value) <= MAX_CUSTOM_ID_LENGTH
