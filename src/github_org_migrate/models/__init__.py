"""Data models for GitHub entities."""

from .repository import Owner, Repository, RepositoryPermissions
from .team import Team, TeamCreate
from .member import MEMBER_ROLE, Member, unique_logins
from .webhook import Webhook
from .protection import (
    BranchProtectionPolicy,
    PullRequestReviewPolicy,
    PushRestrictions,
    StatusCheckPolicy,
)

__all__ = [
    'Owner',
    'Repository',
    'RepositoryPermissions',
    'Team',
    'TeamCreate',
    'MEMBER_ROLE',
    'Member',
    'unique_logins',
    'Webhook',
    'BranchProtectionPolicy',
    'PullRequestReviewPolicy',
    'PushRestrictions',
    'StatusCheckPolicy',
]
