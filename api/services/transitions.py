"""
Status transition validation.

The validator is a pure function of ``(current, requested)`` over an
injected, read-only transition table. It never touches the aggregate; the
engine asks it for a decision and for the audit entry to append.
"""

from datetime import datetime
from typing import Mapping
from uuid import UUID

from core.domain import ApplicationStatus, StatusChange
from core.errors import InvalidTransitionError
from core.rules import STATUS_TRANSITIONS, UNCONFIRMED_STATUSES


def validate_transition(
    current: ApplicationStatus,
    requested: ApplicationStatus,
    table: Mapping[ApplicationStatus, frozenset[ApplicationStatus]] = STATUS_TRANSITIONS,
) -> None:
    """
    Check that ``current -> requested`` is a legal edge.

    Args:
        current: Status the application is in
        requested: Status the caller asked for
        table: Transition table mapping each status to its allowed targets

    Raises:
        InvalidTransitionError: If the edge is not in the table
    """
    if requested not in table.get(current, frozenset()):
        raise InvalidTransitionError(current, requested)


class StatusTransitionValidator:
    """Transition checks and audit entries bound to one transition table."""

    def __init__(self, table: Mapping[ApplicationStatus, frozenset[ApplicationStatus]] = STATUS_TRANSITIONS):
        self.table = table

    def is_terminal(self, status: ApplicationStatus) -> bool:
        return not self.table.get(status)

    def is_noop(self, current: ApplicationStatus, requested: ApplicationStatus) -> bool:
        """Same-state requests on a live application succeed without effect.

        Terminal states never accept another change, including a repeat of
        themselves.
        """
        return current == requested and not self.is_terminal(current)

    def check(self, current: ApplicationStatus, requested: ApplicationStatus) -> None:
        validate_transition(current, requested, self.table)

    def allowed_targets(self, current: ApplicationStatus) -> frozenset[ApplicationStatus]:
        return self.table.get(current, frozenset())

    def entry(
        self,
        previous: ApplicationStatus,
        status: ApplicationStatus,
        changed_by: UUID,
        changed_at: datetime,
        notes: str | None = None,
    ) -> StatusChange:
        """Build the history entry recording ``previous -> status``."""
        return StatusChange(
            status=status,
            changed_at=changed_at,
            changed_by=changed_by,
            notes=notes or f"Status updated to {status.value}",
            metadata={
                "previous_status": previous.value,
                "confirmed": status not in UNCONFIRMED_STATUSES,
            },
        )
