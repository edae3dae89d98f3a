"""Manifest lifecycle transition tests."""
import itertools

import pytest

from cargo_manifest.core.enums import ManifestStatus as S
from cargo_manifest.core.errors import IllegalTransitionError
from cargo_manifest.scanning.state_machine import (
    allowed_transitions,
    assert_transition,
    is_editable,
    is_valid_transition,
)


ALLOWED = {
    (S.DRAFT, S.BUILDING), (S.DRAFT, S.OPEN), (S.DRAFT, S.CLOSED),
    (S.OPEN, S.BUILDING), (S.OPEN, S.CLOSED),
    (S.BUILDING, S.CLOSED), (S.BUILDING, S.OPEN),
    (S.CLOSED, S.DEPARTED),
    (S.DEPARTED, S.ARRIVED),
    (S.ARRIVED, S.RECONCILED),
}


@pytest.mark.parametrize("from_status, to_status", list(itertools.product(S, S)))
def test_transition_table(from_status, to_status):
    assert is_valid_transition(from_status, to_status) == ((from_status, to_status) in ALLOWED)


def test_string_statuses():
    assert is_valid_transition("CLOSED", "DEPARTED")
    assert not is_valid_transition("DRAFT", "DEPARTED")
    assert not is_valid_transition("CLOSED", "OPEN")


def test_unknown_statuses_fail_closed():
    assert not is_valid_transition("LOST", "OPEN")
    assert not is_valid_transition("OPEN", "LOST")
    assert allowed_transitions("LOST") == frozenset()
    assert not is_editable("LOST")


def test_reconciled_is_terminal():
    assert allowed_transitions(S.RECONCILED) == frozenset()


def test_assert_transition_raises():
    with pytest.raises(IllegalTransitionError) as exc_info:
        assert_transition(S.CLOSED, S.OPEN)
    assert exc_info.value.from_status == "CLOSED"
    assert exc_info.value.to_status == "OPEN"
    assert exc_info.value.status_code == 409


def test_editable_statuses():
    assert {s for s in S if is_editable(s)} == {S.DRAFT, S.OPEN, S.BUILDING}
