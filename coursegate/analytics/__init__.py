"""Course completion derivation and admin analytics."""

from .completion import CompletionAggregator, derive_course_status
from .dashboard import (
    DashboardAggregator,
    DashboardMetrics,
    ModuleFunnelEntry,
    UserCourseAnalytics,
    UserModuleProgress,
    compute_dashboard_metrics,
)

__all__ = [
    "CompletionAggregator",
    "DashboardAggregator",
    "DashboardMetrics",
    "ModuleFunnelEntry",
    "UserCourseAnalytics",
    "UserModuleProgress",
    "compute_dashboard_metrics",
    "derive_course_status",
]
