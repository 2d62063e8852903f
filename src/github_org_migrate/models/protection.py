"""Branch protection policy models."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class PullRequestReviewPolicy(BaseModel):
    """Pull request review requirements."""

    dismiss_stale_reviews: bool = Field(
        default=True, description='Dismiss approvals when new commits are pushed'
    )
    require_code_owner_reviews: bool = Field(
        default=True, description='Require review from code owners'
    )
    required_approving_review_count: int = Field(
        default=2, description='Number of approvals required'
    )

    @field_validator('required_approving_review_count')
    @classmethod
    def validate_review_count(cls, v):
        """GitHub accepts 0 to 6 approving reviews."""
        if not 0 <= v <= 6:
            raise ValueError('required_approving_review_count must be between 0 and 6')
        return v


class StatusCheckPolicy(BaseModel):
    """Required status checks."""

    strict: bool = Field(default=True, description='Branch must be up to date')
    contexts: List[str] = Field(default_factory=list, description='Check names')


class PushRestrictions(BaseModel):
    """Who may push to the protected branch."""

    users: List[str] = Field(default_factory=list)
    teams: List[str] = Field(default_factory=list)
    apps: List[str] = Field(default_factory=list)


class BranchProtectionPolicy(BaseModel):
    """Protection applied to the default branch of every migrated repository."""

    required_status_checks: Optional[StatusCheckPolicy] = Field(
        default=None, description='Status check requirements'
    )
    enforce_admins: bool = Field(default=True, description='Enforce for admins')
    required_pull_request_reviews: Optional[PullRequestReviewPolicy] = Field(
        default_factory=PullRequestReviewPolicy,
        description='Pull request review requirements',
    )
    restrictions: Optional[PushRestrictions] = Field(
        default=None, description='Push restrictions'
    )

    def to_payload(self) -> Dict[str, Any]:
        """Request body for ``PUT /repos/{owner}/{repo}/branches/{branch}/protection``.

        All four top-level keys are required by the API, so unset sections
        are sent as explicit nulls.
        """
        return self.model_dump()
