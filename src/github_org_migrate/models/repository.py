"""Repository entity models."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Owner(BaseModel):
    """Account owning a repository."""

    model_config = ConfigDict(extra='ignore')

    login: str = Field(..., description='Account login')
    type: Optional[str] = Field(default=None, description='Organization or User')


class RepositoryPermissions(BaseModel):
    """Permission flags GitHub reports for a repository."""

    model_config = ConfigDict(extra='ignore')

    admin: bool = Field(default=False, description='Admin access')
    maintain: bool = Field(default=False, description='Maintain access')
    push: bool = Field(default=False, description='Push access')
    triage: bool = Field(default=False, description='Triage access')
    pull: bool = Field(default=False, description='Pull access')

    def highest_tier(self) -> str:
        """Strongest grantable tier, by precedence admin > push > pull.

        ``maintain`` and ``triage`` are not consulted.
        """
        if self.admin:
            return 'admin'
        if self.push:
            return 'push'
        return 'pull'


class Repository(BaseModel):
    """GitHub repository model."""

    model_config = ConfigDict(extra='ignore')

    id: Optional[int] = Field(default=None, description='Repository ID')
    name: str = Field(..., description='Repository name')
    full_name: Optional[str] = Field(default=None, description='owner/name')
    owner: Optional[Owner] = Field(default=None, description='Owning account')
    private: Optional[bool] = Field(default=None, description='Private repository')
    description: Optional[str] = Field(default=None, description='Description')
    default_branch: str = Field(default='main', description='Default branch name')
    archived: bool = Field(default=False, description='Repository is archived')
    topics: list = Field(default_factory=list, description='Repository topics')

    # Only present when listed through a team or for the authenticated user
    permissions: Optional[RepositoryPermissions] = Field(
        default=None, description='Permissions of the listing context'
    )

    @property
    def qualified_name(self) -> str:
        """``owner/name``, falling back to the bare name."""
        if self.full_name:
            return self.full_name
        if self.owner:
            return f'{self.owner.login}/{self.name}'
        return self.name

    def permission_tier(self) -> str:
        """Tier to grant for this repository, ``pull`` when unknown."""
        if self.permissions is None:
            return 'pull'
        return self.permissions.highest_tier()
