"""API route modules."""
from exam_api.routes import attempts, auth, groups, tests

__all__ = ["attempts", "auth", "groups", "tests"]
