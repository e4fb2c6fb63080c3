"""
Tests for the status transition table and validator.
"""

import itertools
import uuid
from types import MappingProxyType

import pytest

from api.services.transitions import StatusTransitionValidator, validate_transition
from core.domain import ApplicationStatus
from core.errors import InvalidTransitionError
from core.rules import STATUS_TRANSITIONS, TERMINAL_STATUSES
from fakes import FIXED_NOW

S = ApplicationStatus


class TestTransitionTable:
    def test_every_status_has_an_entry(self):
        assert set(STATUS_TRANSITIONS) == set(S)

    def test_terminal_statuses_have_no_targets(self):
        for status in TERMINAL_STATUSES:
            assert STATUS_TRANSITIONS[status] == frozenset()

    def test_every_live_status_can_be_rejected_or_withdrawn(self):
        for status in set(S) - TERMINAL_STATUSES:
            assert {S.REJECTED, S.WITHDRAWN} <= STATUS_TRANSITIONS[status]

    def test_table_is_read_only(self):
        with pytest.raises(TypeError):
            STATUS_TRANSITIONS[S.HIRED] = frozenset({S.SUBMITTED})


class TestValidateTransition:
    @pytest.mark.parametrize("current,requested", [
        (current, requested)
        for current, targets in STATUS_TRANSITIONS.items()
        for requested in targets
    ])
    def test_table_edges_allowed(self, current, requested):
        validate_transition(current, requested)

    @pytest.mark.parametrize("current,requested", [
        (current, requested)
        for current, requested in itertools.product(S, S)
        if requested not in STATUS_TRANSITIONS[current]
    ])
    def test_other_edges_rejected(self, current, requested):
        with pytest.raises(InvalidTransitionError) as exc_info:
            validate_transition(current, requested)

        assert exc_info.value.current_status == current.value
        assert exc_info.value.requested_status == requested.value

    def test_skipping_review_rejected(self):
        with pytest.raises(InvalidTransitionError, match="from submitted to interviewing"):
            validate_transition(S.SUBMITTED, S.INTERVIEWING)

    def test_custom_table(self):
        table = MappingProxyType({S.SUBMITTED: frozenset({S.HIRED})})

        validate_transition(S.SUBMITTED, S.HIRED, table)
        with pytest.raises(InvalidTransitionError):
            validate_transition(S.SUBMITTED, S.UNDER_REVIEW, table)


class TestStatusTransitionValidator:
    @pytest.fixture
    def validator(self):
        return StatusTransitionValidator()

    @pytest.mark.parametrize("status", list(S))
    def test_noop_only_for_live_statuses(self, validator, status):
        assert validator.is_noop(status, status) is (status not in TERMINAL_STATUSES)

    def test_different_statuses_never_noop(self, validator):
        assert not validator.is_noop(S.SUBMITTED, S.UNDER_REVIEW)

    def test_terminal_detection(self, validator):
        assert {s for s in S if validator.is_terminal(s)} == TERMINAL_STATUSES

    def test_allowed_targets(self, validator):
        assert validator.allowed_targets(S.OFFER_PENDING) == {S.HIRED, S.REJECTED, S.WITHDRAWN}
        assert validator.allowed_targets(S.HIRED) == frozenset()

    def test_entry_for_confirmed_status(self, validator):
        actor_id = uuid.uuid4()

        entry = validator.entry(S.UNDER_REVIEW, S.SHORTLISTED, actor_id, FIXED_NOW)

        assert entry.status == S.SHORTLISTED
        assert entry.changed_by == actor_id
        assert entry.changed_at == FIXED_NOW
        assert entry.notes == "Status updated to shortlisted"
        assert entry.metadata == {"previous_status": "under_review", "confirmed": True}

    @pytest.mark.parametrize("status", [S.REJECTED, S.WITHDRAWN])
    def test_entry_for_closing_status_unconfirmed(self, validator, status):
        entry = validator.entry(S.SUBMITTED, status, uuid.uuid4(), FIXED_NOW, notes="Closed")

        assert entry.notes == "Closed"
        assert entry.metadata["confirmed"] is False

    def test_entries_are_immutable(self, validator):
        entry = validator.entry(S.SUBMITTED, S.UNDER_REVIEW, uuid.uuid4(), FIXED_NOW)

        with pytest.raises(AttributeError):
            entry.status = S.HIRED
