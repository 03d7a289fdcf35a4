from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping, Sequence


def _to_str(value: Any) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


@dataclass(frozen=True)
class TrackedField:
    """A field subject to audit on update, with its string-conversion rule."""

    name: str
    to_str: Callable[[Any], str] = _to_str


@dataclass(frozen=True)
class ChangeRecord:
    field: str
    old_value: str | None
    new_value: str | None
    actor_id: int


TASK_TRACKED_FIELDS: tuple[TrackedField, ...] = (
    TrackedField("title"),
    TrackedField("description"),
    TrackedField("status"),
    TrackedField("assignee_id"),
    TrackedField("board_id"),
)


def diff(
    tracked_fields: Sequence[TrackedField],
    previous: Mapping[str, Any],
    proposed: Mapping[str, Any],
    actor_id: int,
) -> list[ChangeRecord]:
    """
    Compare a snapshot against a partial update, field by tracked field.

    Only tracked fields present in `proposed` are compared; other keys are
    ignored. None stands for an unset value. Set values are compared by their
    string form, so 1 and "1" are equal. Records follow the order of
    `tracked_fields`.
    """
    changes = []
    for tracked in tracked_fields:
        if tracked.name not in proposed:
            continue
        old = previous.get(tracked.name)
        new = proposed[tracked.name]
        old_str = None if old is None else tracked.to_str(old)
        new_str = None if new is None else tracked.to_str(new)
        if old_str != new_str:
            changes.append(ChangeRecord(tracked.name, old_str, new_str, actor_id))
    return changes
