from typing import Optional
from pydantic import BaseModel

SERVICE_ROLE_SUBJECT = "service-role"


class AuthorizationContext(BaseModel):
    """Per-organization scope passed explicitly to every billing store operation"""

    subject: str
    role: str = "authenticated"
    organization_id: Optional[str] = None

    class Config:
        frozen = True

    @property
    def is_service_role(self) -> bool:
        return self.subject == SERVICE_ROLE_SUBJECT

    def allows(self, organization_id: str) -> bool:
        return self.organization_id is not None and self.organization_id == organization_id


def build_service_role_context(
    organization_id: Optional[str] = None, role: str = "authenticated"
) -> AuthorizationContext:
    """Synthesise the context background jobs use to act for one organization."""
    return AuthorizationContext(
        subject=SERVICE_ROLE_SUBJECT, role=role, organization_id=organization_id
    )
