"""
Authorization decisions for application operations.

Permission checks combine two rules:
1. The actor's role must grant the permission.
2. The actor must own the application, either as its candidate or as staff
   of the hiring company. Platform admins bypass ownership.
"""

import logging
from enum import Enum
from typing import Set
from uuid import UUID

from core.domain import Actor, ActorRole, Application

logger = logging.getLogger(__name__)


class Permission(str, Enum):
    """Application permissions."""

    APPLICATION_SUBMIT = "application:submit"
    APPLICATION_READ = "application:read"
    APPLICATION_UPDATE_STATUS = "application:update_status"
    APPLICATION_WITHDRAW = "application:withdraw"
    APPLICATION_ATTACH = "application:attach"
    APPLICATION_ARCHIVE = "application:archive"
    APPLICATION_DELETE = "application:delete"
    APPLICATION_RESCORE = "application:rescore"
    INTERVIEW_SCHEDULE = "interview:schedule"
    DASHBOARD_VIEW = "dashboard:view"


_STAFF = {
    Permission.APPLICATION_READ,
    Permission.APPLICATION_UPDATE_STATUS,
    Permission.APPLICATION_RESCORE,
    Permission.INTERVIEW_SCHEDULE,
    Permission.DASHBOARD_VIEW,
}

# Role to permission mapping
ROLE_PERMISSIONS: dict[ActorRole, Set[Permission]] = {
    ActorRole.CANDIDATE: {
        Permission.APPLICATION_SUBMIT,
        Permission.APPLICATION_READ,
        Permission.APPLICATION_WITHDRAW,
        Permission.APPLICATION_ATTACH,
    },
    ActorRole.RECRUITER: set(_STAFF),
    ActorRole.HIRING_MANAGER: set(_STAFF),
    ActorRole.COMPANY_ADMIN: _STAFF | {Permission.APPLICATION_ARCHIVE},
    # Withdrawal belongs to the candidate alone, even for admins
    ActorRole.ADMIN: set(Permission) - {Permission.APPLICATION_WITHDRAW},
}


class RolePolicy:
    """Role plus ownership based authorization."""

    def __init__(self, role_permissions: dict[ActorRole, Set[Permission]] | None = None):
        self.role_permissions = role_permissions or ROLE_PERMISSIONS

    def can_perform(self, actor: Actor, action: Permission, application: Application) -> bool:
        """
        Decide whether ``actor`` may perform ``action`` on ``application``.

        Args:
            actor: Resolved caller identity
            action: Permission being exercised
            application: Target aggregate

        Returns:
            True if allowed
        """
        granted = self.role_permissions.get(actor.role, set())
        if action not in granted:
            logger.warning(
                f"Actor {actor.id} with role {actor.role.value} lacks permission {action.value}"
            )
            return False

        if actor.role == ActorRole.ADMIN:
            return True

        if actor.role == ActorRole.CANDIDATE:
            owns = actor.candidate_id is not None and actor.candidate_id == application.candidate_id
        else:
            owns = actor.company_id is not None and actor.company_id == application.company_id

        if not owns:
            logger.warning(
                f"Actor {actor.id} denied {action.value} on application {application.id}: not owner"
            )
        return owns

    def can_view_company(self, actor: Actor, company_id: UUID) -> bool:
        """Whether ``actor`` may list the applications of ``company_id``."""
        if Permission.DASHBOARD_VIEW not in self.role_permissions.get(actor.role, set()):
            return False
        return actor.role == ActorRole.ADMIN or actor.company_id == company_id
