from typing import Dict, Optional

from pydantic import BaseModel


class CurrentUser(BaseModel):
    """Lightweight representation of the authenticated user for RBAC checks.
    Built from the access token issued by the external auth provider.
    """

    id: str  # token subject
    role: str
    email: Optional[str] = None
    permissions: Dict[str, Dict[str, bool]]
