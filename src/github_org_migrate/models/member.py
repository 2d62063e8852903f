"""Organization member models."""

from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

# Invitees and team members always receive the plain member role
MEMBER_ROLE = 'member'


class Member(BaseModel):
    """GitHub user as listed in an organization or team."""

    model_config = ConfigDict(extra='ignore')

    login: str = Field(..., description='Username')
    id: Optional[int] = Field(default=None, description='User ID')
    type: Optional[str] = Field(default=None, description='User or Bot')
    site_admin: Optional[bool] = Field(default=None, description='Site admin')


def unique_logins(members: Iterable[Member]) -> List[str]:
    """Logins in first-seen order, each login once."""
    seen: Dict[str, None] = {}
    for member in members:
        seen.setdefault(member.login, None)
    return list(seen)
