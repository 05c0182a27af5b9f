"""lxcctl package."""

__all__ = [
    "cli",
    "config",
    "constants",
    "exceptions",
    "executor",
    "lifecycle",
    "locking",
    "models",
    "platform",
    "privilege",
    "pveconf",
    "retry",
    "status",
    "utils",
    "validation",
]
