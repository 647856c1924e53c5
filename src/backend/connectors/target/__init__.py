from .local import LocalBackend, TargetBackendError

__all__ = ["LocalBackend", "TargetBackendError"]
