"""Team entity models."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Team(BaseModel):
    """GitHub team model."""

    model_config = ConfigDict(extra='ignore')

    id: Optional[int] = Field(default=None, description='Team ID')
    name: str = Field(..., description='Team name')
    slug: str = Field(..., description='Team slug')
    description: Optional[str] = Field(default=None, description='Team description')
    privacy: Optional[str] = Field(
        default=None, description='Team privacy (secret, closed)'
    )
    permission: Optional[str] = Field(
        default=None, description='Default repository permission'
    )

    @field_validator('privacy')
    @classmethod
    def validate_privacy(cls, v):
        """Validate team privacy."""
        valid_privacy = ['secret', 'closed']
        if v is not None and v not in valid_privacy:
            raise ValueError(f'Privacy must be one of: {valid_privacy}')
        return v


class TeamCreate(BaseModel):
    """Model for creating a team in the target organization."""

    name: str = Field(..., description='Team name')
    description: Optional[str] = Field(default=None, description='Team description')
    privacy: Optional[str] = Field(default=None, description='Team privacy')

    @classmethod
    def from_team(cls, team: Team) -> 'TeamCreate':
        """Copy name, description and privacy verbatim."""
        return cls(name=team.name, description=team.description, privacy=team.privacy)
