"""
API Services Layer.

Application lifecycle engine and the read-side dashboard queries.
"""

from api.services.applications import (
    ApplicationLifecycleEngine,
    AttachResult,
    Submission,
    WithdrawalSummary,
)
from api.services.dashboard import ApplicationPage, DashboardService

__all__ = [
    "ApplicationLifecycleEngine",
    "AttachResult",
    "Submission",
    "WithdrawalSummary",
    "ApplicationPage",
    "DashboardService",
]
