"""
Monitoring Models Package

Domain records, derived alerts and live-update events.
"""

from .events import ChangeNotification
from .monitoring import (
    Alert,
    AuditEntry,
    ErrorReport,
    ExportBlob,
    FeedbackItem,
    MaintenanceWindow,
    PerformanceSnapshot,
    ServiceHealthRecord,
    SystemHealthSnapshot,
)

__all__ = [
    'Alert',
    'AuditEntry',
    'ChangeNotification',
    'ErrorReport',
    'ExportBlob',
    'FeedbackItem',
    'MaintenanceWindow',
    'PerformanceSnapshot',
    'ServiceHealthRecord',
    'SystemHealthSnapshot',
]
