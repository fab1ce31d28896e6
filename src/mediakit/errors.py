from __future__ import annotations

READ_EXTERNAL_STORAGE = "android.permission.READ_EXTERNAL_STORAGE"

PERMISSION_DENIED_PREFIX = "PERMISSION_DENIED:"


class MediaError(OSError):
    """Media could not be opened, copied or decoded."""


class PermissionDeniedError(RuntimeError):
    """A capability needed to reach the media has not been granted."""

    def __init__(self, permission: str) -> None:
        super().__init__(permission)
        self.permission = permission


def encode_permission_denied(permission: str) -> str:
    return f"{PERMISSION_DENIED_PREFIX}{permission}"


def decode_permission_denied(message: str) -> str:
    # Callers have always split on ":" and taken the second field.
    return message.split(":")[1]
