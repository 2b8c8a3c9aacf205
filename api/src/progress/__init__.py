"""Enrollment and progress tracking module.

Provides:
- Course enrollment management
- Idempotent module completion
- Integer progress aggregation
- Course completion and certificate trigger
"""

from .models import (
    PROGRESS_TABLES_CQL,
    Enrollment,
    EnrollmentStatus,
    ModuleProgress,
    compute_progress,
)


__all__ = [
    "PROGRESS_TABLES_CQL",
    "Enrollment",
    "EnrollmentStatus",
    "ModuleProgress",
    "compute_progress",
]
