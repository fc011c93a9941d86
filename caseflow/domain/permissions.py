from __future__ import annotations

from typing import Any

PERM_WILDCARD = "*"
PERM_CASE_WRITE = "case.write"
PERM_TASK_CREATE = "task.create"


def has_permission(claims: dict[str, Any], permission: str) -> bool:
    permissions = claims.get("permissions", [])
    if not isinstance(permissions, list):
        return False
    return permission in permissions or PERM_WILDCARD in permissions
