"""FastAPI dependencies for dependency injection."""

import logging
from typing import Optional
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status

from api.services.applications import ApplicationLifecycleEngine
from api.services.dashboard import DashboardService
from core.config import settings
from core.domain import Actor, ActorRole, Provenance
from core.interfaces import ApplicationStore, AttachmentStorage
from core.middleware.logging import get_client_ip
from core.notifications import CeleryCleanupScheduler, CeleryNotifier
from core.policies import RolePolicy
from core.storage.factory import get_storage
from database.lookups import SQLCandidateDirectory, SQLJobDirectory
from database.store import SQLApplicationStore

logger = logging.getLogger(__name__)


def _header_uuid(request: Request, name: str) -> Optional[UUID]:
    value = request.headers.get(name)
    if not value:
        return None
    try:
        return UUID(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid {name} header",
        )


async def get_current_actor(request: Request) -> Actor:
    """
    Resolve the calling actor.

    Authentication middleware may place an ``Actor`` on ``request.state``;
    otherwise the trusted gateway headers are read.
    """
    actor = getattr(request.state, "actor", None)
    if isinstance(actor, Actor):
        return actor

    actor_id = _header_uuid(request, "X-Actor-Id")
    role = request.headers.get("X-Actor-Role")
    if actor_id is None or not role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        actor_role = ActorRole(role.lower())
    except ValueError:
        logger.warning(f"Rejected unknown actor role {role!r}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown actor role",
        )

    return Actor(
        id=actor_id,
        role=actor_role,
        company_id=_header_uuid(request, "X-Actor-Company-Id"),
        candidate_id=_header_uuid(request, "X-Actor-Candidate-Id"),
    )


def get_provenance(request: Request) -> Provenance:
    """Client ip (unmasked, stored with the submission) and user agent."""
    return Provenance(
        ip_address=get_client_ip(request, mask=False),
        user_agent=request.headers.get("user-agent"),
    )


def get_attachment_storage() -> AttachmentStorage:
    return get_storage()


def get_application_store() -> ApplicationStore:
    return SQLApplicationStore()


def get_policy() -> RolePolicy:
    return RolePolicy()


def get_lifecycle_engine(
    store: ApplicationStore = Depends(get_application_store),
    storage: AttachmentStorage = Depends(get_attachment_storage),
    policy: RolePolicy = Depends(get_policy),
) -> ApplicationLifecycleEngine:
    """Build a per-request engine; it holds no state between requests."""
    return ApplicationLifecycleEngine(
        store=store,
        jobs=SQLJobDirectory(),
        candidates=SQLCandidateDirectory(),
        storage=storage,
        policy=policy,
        notifier=CeleryNotifier(),
        cleanup_scheduler=CeleryCleanupScheduler(),
        default_timeout=settings.operation_timeout_seconds,
        max_write_attempts=settings.max_write_attempts,
    )


def get_dashboard_service(
    store: ApplicationStore = Depends(get_application_store),
) -> DashboardService:
    return DashboardService(store)
