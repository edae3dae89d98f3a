"""Manifest lifecycle transitions."""
from typing import FrozenSet, Optional, Union

from cargo_manifest.core.enums import ManifestStatus
from cargo_manifest.core.errors import IllegalTransitionError


StatusLike = Union[ManifestStatus, str]

VALID_TRANSITIONS = {
    ManifestStatus.DRAFT: frozenset({ManifestStatus.BUILDING, ManifestStatus.OPEN, ManifestStatus.CLOSED}),
    ManifestStatus.OPEN: frozenset({ManifestStatus.BUILDING, ManifestStatus.CLOSED}),
    ManifestStatus.BUILDING: frozenset({ManifestStatus.CLOSED, ManifestStatus.OPEN}),
    ManifestStatus.CLOSED: frozenset({ManifestStatus.DEPARTED}),
    ManifestStatus.DEPARTED: frozenset({ManifestStatus.ARRIVED}),
    ManifestStatus.ARRIVED: frozenset({ManifestStatus.RECONCILED}),
    ManifestStatus.RECONCILED: frozenset(),
}

EDITABLE_STATUSES = frozenset({ManifestStatus.OPEN, ManifestStatus.DRAFT, ManifestStatus.BUILDING})


def _coerce(status: StatusLike) -> Optional[ManifestStatus]:
    if isinstance(status, ManifestStatus):
        return status
    try:
        return ManifestStatus(status)
    except (ValueError, TypeError):
        return None


def allowed_transitions(status: StatusLike) -> FrozenSet[ManifestStatus]:
    current = _coerce(status)
    if current is None:
        return frozenset()
    return VALID_TRANSITIONS[current]


def is_valid_transition(from_status: StatusLike, to_status: StatusLike) -> bool:
    """True only for pairs listed in the transition table. Unknown values fail closed."""
    target = _coerce(to_status)
    return target is not None and target in allowed_transitions(from_status)


def assert_transition(from_status: StatusLike, to_status: StatusLike) -> None:
    if not is_valid_transition(from_status, to_status):
        raise IllegalTransitionError(_label(from_status), _label(to_status))


def is_editable(status: StatusLike) -> bool:
    """A manifest accepts item changes only while OPEN, DRAFT or BUILDING."""
    return _coerce(status) in EDITABLE_STATUSES


def _label(status: StatusLike) -> str:
    return status.value if isinstance(status, ManifestStatus) else str(status)
