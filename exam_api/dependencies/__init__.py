"""FastAPI dependencies."""
from exam_api.dependencies.auth import get_current_user, require_manager, require_role, require_student
from exam_api.dependencies.catalog import get_catalog

__all__ = [
    "get_current_user",
    "require_manager",
    "require_role",
    "require_student",
    "get_catalog",
]
