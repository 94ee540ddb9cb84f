"""Resource repository implementations."""

from tutor_rag.providers.resource.sqlite_resource_repository import SQLiteResourceRepository

__all__ = ["SQLiteResourceRepository"]
