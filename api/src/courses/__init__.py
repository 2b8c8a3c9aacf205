"""Course catalog module.

Courses and their ordered modules.
"""

from src.courses.router import router
from src.courses.service import CourseNotFoundError, CourseService


__all__ = ["CourseNotFoundError", "CourseService", "router"]
