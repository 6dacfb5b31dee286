from typing import Dict

ADMIN_ROLES = ("admin", "super_admin")

# Per-role module permissions; admins bypass the table entirely.
ROLE_PERMISSIONS: Dict[str, Dict[str, Dict[str, bool]]] = {
    "accountant": {
        "fees": {"create": True, "read": True, "update": True},
        "invoices": {"create": True, "read": True, "update": True},
    },
    "teacher": {
        "fees": {"read": True},
        "invoices": {"read": True},
    },
}


def permissions_for_role(role: str) -> Dict[str, Dict[str, bool]]:
    return ROLE_PERMISSIONS.get(role, {})
