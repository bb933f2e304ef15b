"""Path sandboxing for every filesystem access made on behalf of a kit."""

from .paths import is_path_safe_to_remove, validate_sync_path

__all__ = ["validate_sync_path", "is_path_safe_to_remove"]
