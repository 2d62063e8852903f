"""Migration phase interfaces and implementations."""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from functools import partial
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
    Optional,
    Sequence,
    Type,
    TypeVar,
    Union,
)
from urllib.parse import quote

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from ..api.client import GitHubClient
from ..models.member import MEMBER_ROLE, Member, unique_logins
from ..models.protection import BranchProtectionPolicy
from ..models.repository import Repository
from ..models.team import Team, TeamCreate
from ..models.webhook import Webhook


class MigrationStatus(str, Enum):
    """Migration status enumeration."""

    COMPLETED = 'completed'
    FAILED = 'failed'
    SKIPPED = 'skipped'


class MigrationResult(BaseModel):
    """Outcome of a single item operation."""

    entity_type: str = Field(..., description='Type of entity migrated')
    entity_id: str = Field(..., description='Identifier of the entity')
    account: Optional[str] = Field(
        default=None, description='Organization the item belongs to'
    )
    status: MigrationStatus = Field(..., description='Migration status')

    started_at: datetime = Field(..., description='Operation start time')
    completed_at: Optional[datetime] = Field(
        default=None, description='Operation completion time'
    )

    success: bool = Field(..., description='Operation was successful')
    destination_data: Optional[Dict[str, Any]] = Field(
        default=None, description='Response data from the target'
    )
    error_message: Optional[str] = Field(
        default=None, description='Error message if failed'
    )
    metadata: Dict[str, Any] = Field(
        default_factory=dict, description='Additional metadata'
    )


class PhaseLedger(BaseModel):
    """Per-phase record of item outcomes and any phase-level failure."""

    phase: str = Field(..., description='Phase name')
    started_at: datetime = Field(..., description='Phase start time')
    completed_at: Optional[datetime] = Field(
        default=None, description='Phase completion time'
    )
    results: List[MigrationResult] = Field(
        default_factory=list, description='Item results in execution order'
    )
    error: Optional[str] = Field(
        default=None, description='Error that aborted the phase, if any'
    )
    details: Dict[str, Any] = Field(
        default_factory=dict, description='Phase-specific output'
    )

    def extend(self, results: Sequence[MigrationResult]) -> None:
        self.results.extend(results)

    def _count(self, status: MigrationStatus) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def successful(self) -> int:
        return self._count(MigrationStatus.COMPLETED)

    @property
    def failed(self) -> int:
        return self._count(MigrationStatus.FAILED)

    @property
    def skipped(self) -> int:
        return self._count(MigrationStatus.SKIPPED)

    @property
    def failures(self) -> List[MigrationResult]:
        return [r for r in self.results if r.status == MigrationStatus.FAILED]

    @property
    def ok(self) -> bool:
        """True when the phase finished with no failure of either tier."""
        return self.error is None and self.failed == 0

    def summary(self) -> Dict[str, int]:
        """Counts by status."""
        return {
            'total': self.total,
            'successful': self.successful,
            'failed': self.failed,
            'skipped': self.skipped,
        }


class MigrationContext(BaseModel):
    """Context shared by every phase of one run."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    client: GitHubClient = Field(..., description='GitHub API client')
    source_orgs: List[str] = Field(..., description='Source organizations, in order')
    target_org: str = Field(..., description='Target organization')
    repo_topics: List[str] = Field(
        default_factory=list, description='Topics applied to target repositories'
    )
    branch_protection: BranchProtectionPolicy = Field(
        default_factory=BranchProtectionPolicy,
        description='Protection applied to target default branches',
    )

    dry_run: bool = Field(default=False, description='Perform dry run without changes')
    max_workers: int = Field(default=5, description='Concurrent items per phase')
    per_page: int = Field(default=100, description='Page size for list queries')

    cancel_event: asyncio.Event = Field(
        default_factory=asyncio.Event, description='Cooperative cancellation token'
    )

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        """Request that the run stop before the next item."""
        self.cancel_event.set()


ModelType = TypeVar('ModelType', bound=BaseModel)
ItemType = TypeVar('ItemType')
ItemOutcome = Union[MigrationResult, List[MigrationResult]]


class MigrationPhase(ABC):
    """Abstract base class for one stage of the migration pipeline."""

    name = 'phase'

    def __init__(self, context: MigrationContext):
        """Initialize migration phase.

        Args:
            context: Migration context with client and settings
        """
        self.context = context
        self.client = context.client
        self.logger = logger.bind(phase=self.name)

    @abstractmethod
    async def run(self, ledger: PhaseLedger) -> None:
        """Perform the phase, appending item results to ``ledger``.

        Errors raised from here are phase-level failures.
        """
        pass

    async def execute(self, previous: Optional[PhaseLedger] = None) -> PhaseLedger:
        """Run the phase behind its failure boundary.

        Args:
            previous: Ledger of the preceding stage. Informational only, a
                phase never waits on or skips because of its predecessor.

        Returns:
            Ledger for this phase
        """
        if previous is not None and not previous.ok:
            self.logger.info(
                f'Previous phase {previous.phase} reported '
                f'{previous.failed} failed items'
                + (f' and error: {previous.error}' if previous.error else '')
                + '; continuing'
            )

        ledger = PhaseLedger(phase=self.name, started_at=datetime.now())
        self.logger.info(f'Starting {self.name} phase')

        try:
            await self.run(ledger)
        except Exception as e:
            ledger.error = str(e)
            self.logger.error(f'Error during {self.name} phase: {e}')

        ledger.completed_at = datetime.now()
        self.logger.info(
            f'Completed {self.name} phase: {ledger.successful} successful, '
            f'{ledger.failed} failed, {ledger.skipped} skipped'
        )
        return ledger

    def create_result(
        self,
        entity_type: str,
        entity_id: str,
        status: MigrationStatus,
        success: bool = True,
        error_message: Optional[str] = None,
        started_at: Optional[datetime] = None,
        **kwargs,
    ) -> MigrationResult:
        """Create a migration result.

        Args:
            entity_type: Type of entity
            entity_id: Entity identifier
            status: Migration status
            success: Whether the operation was successful
            error_message: Error message if failed
            started_at: Operation start time (defaults to now)
            **kwargs: Additional fields for the result

        Returns:
            Migration result
        """
        return MigrationResult(
            entity_type=entity_type,
            entity_id=entity_id,
            status=status,
            started_at=started_at or datetime.now(),
            completed_at=datetime.now(),
            success=success,
            error_message=error_message,
            **kwargs,
        )

    def failure(
        self, entity_type: str, entity_id: str, message: str, account: Optional[str]
    ) -> MigrationResult:
        """Log and record an item-level failure."""
        self.logger.error(message)
        return self.create_result(
            entity_type=entity_type,
            entity_id=entity_id,
            status=MigrationStatus.FAILED,
            success=False,
            error_message=message,
            account=account,
        )

    async def list_resources(
        self,
        endpoint: str,
        model: Type[ModelType],
        params: Optional[Dict[str, Any]] = None,
    ) -> List[ModelType]:
        """Fetch every page of a list endpoint as models."""
        return [
            model(**item)
            async for item in self.client.paginate(
                endpoint, params=params, per_page=self.context.per_page
            )
        ]

    async def run_item(
        self,
        entity_type: str,
        entity_id: str,
        action: Callable[[], Awaitable[Any]],
        description: str,
        success_message: str,
        account: Optional[str] = None,
    ) -> MigrationResult:
        """Perform one write behind the item failure boundary.

        Args:
            entity_type: Type of entity
            entity_id: Entity identifier for the ledger
            action: Coroutine factory issuing the write
            description: What the action does, e.g. ``transfer repo a/b``
            success_message: Line logged when the action succeeds
            account: Organization the item belongs to

        Returns:
            Result of the item; never raises for item errors
        """
        if self.context.cancelled:
            return self.create_result(
                entity_type=entity_type,
                entity_id=entity_id,
                status=MigrationStatus.SKIPPED,
                account=account,
                metadata={'reason': 'cancelled'},
            )

        if self.context.dry_run:
            self.logger.info(f'Dry run: would {description}')
            return self.create_result(
                entity_type=entity_type,
                entity_id=entity_id,
                status=MigrationStatus.COMPLETED,
                account=account,
                metadata={'dry_run': True},
            )

        started_at = datetime.now()
        try:
            response = await action()
        except Exception as e:
            result = self.failure(
                entity_type, entity_id, f'Failed to {description}: {e}', account
            )
            result.started_at = started_at
            return result

        self.logger.info(success_message)
        data = getattr(response, 'data', None)
        return self.create_result(
            entity_type=entity_type,
            entity_id=entity_id,
            status=MigrationStatus.COMPLETED,
            account=account,
            started_at=started_at,
            destination_data=data if isinstance(data, dict) else None,
        )

    async def run_items(
        self,
        items: Sequence[ItemType],
        worker: Callable[[ItemType], Awaitable[ItemOutcome]],
        entity_type: str = 'item',
    ) -> List[MigrationResult]:
        """Run ``worker`` for every item, at most ``max_workers`` at a time.

        One item's failure never cancels its siblings. Results keep the
        order of ``items``.
        """
        semaphore = asyncio.Semaphore(self.context.max_workers)

        async def bounded(item: ItemType) -> ItemOutcome:
            async with semaphore:
                return await worker(item)

        outcomes = await asyncio.gather(
            *(bounded(item) for item in items), return_exceptions=True
        )

        results: List[MigrationResult] = []
        for item, outcome in zip(items, outcomes):
            if isinstance(outcome, Exception):
                results.append(
                    self.failure(
                        entity_type,
                        str(getattr(item, 'name', item)),
                        f'Unexpected error processing {entity_type}: {outcome}',
                        None,
                    )
                )
            elif isinstance(outcome, BaseException):
                raise outcome
            elif isinstance(outcome, list):
                results.extend(outcome)
            else:
                results.append(outcome)

        return results


class TransferPhase(MigrationPhase):
    """Transfer ownership of every source repository to the target."""

    name = 'transfer'

    async def run(self, ledger: PhaseLedger) -> None:
        for org in self.context.source_orgs:
            repos = await self.list_resources(
                f'/orgs/{org}/repos', Repository, params={'type': 'all'}
            )
            self.logger.info(f'Found {len(repos)} repositories in {org}')
            ledger.extend(
                await self.run_items(
                    repos, partial(self._transfer, org), entity_type='repository'
                )
            )

    async def _transfer(self, org: str, repo: Repository) -> MigrationResult:
        target = self.context.target_org
        return await self.run_item(
            entity_type='repository',
            entity_id=repo.qualified_name,
            action=lambda: self.client.post_async(
                f'/repos/{org}/{repo.name}/transfer', data={'new_owner': target}
            ),
            description=f'transfer {repo.qualified_name}',
            success_message=f'Transferred repository {repo.qualified_name} to {target}',
            account=org,
        )


class TeamMigrationPhase(MigrationPhase):
    """Recreate teams, their members and repository permissions on the target."""

    name = 'teams'

    async def run(self, ledger: PhaseLedger) -> None:
        for org in self.context.source_orgs:
            teams = await self.list_resources(f'/orgs/{org}/teams', Team)
            self.logger.info(f'Found {len(teams)} teams in {org}')
            ledger.extend(
                await self.run_items(
                    teams, partial(self._migrate_team, org), entity_type='team'
                )
            )

    async def _migrate_team(self, org: str, team: Team) -> List[MigrationResult]:
        target = self.context.target_org
        payload = TeamCreate.from_team(team).model_dump(exclude_none=True)

        created = await self.run_item(
            entity_type='team',
            entity_id=f'{org}/{team.slug}',
            action=lambda: self.client.post_async(f'/orgs/{target}/teams', data=payload),
            description=f'create team {team.name}',
            success_message=f'Created team {team.name} in {target}',
            account=org,
        )
        if created.status != MigrationStatus.COMPLETED:
            # Collisions and other create failures skip members and repositories
            return [created]

        new_slug = (created.destination_data or {}).get('slug', team.slug)
        results = [created]
        results.extend(await self._migrate_members(org, team, new_slug))
        results.extend(await self._migrate_repositories(org, team, new_slug))
        return results

    async def _migrate_members(
        self, org: str, team: Team, new_slug: str
    ) -> List[MigrationResult]:
        try:
            members = await self.list_resources(
                f'/orgs/{org}/teams/{team.slug}/members', Member
            )
        except Exception as e:
            return [
                self.failure(
                    'team_member',
                    f'{org}/{team.slug}',
                    f'Failed to list members of team {team.name} in {org}: {e}',
                    org,
                )
            ]

        target = self.context.target_org

        async def add_member(member: Member) -> MigrationResult:
            return await self.run_item(
                entity_type='team_member',
                entity_id=f'{team.name}/{member.login}',
                action=lambda: self.client.put_async(
                    f'/orgs/{target}/teams/{new_slug}/memberships/{member.login}',
                    data={'role': MEMBER_ROLE},
                ),
                description=f'add {member.login} to team {team.name}',
                success_message=f'Added {member.login} to team {team.name}',
                account=org,
            )

        return await self.run_items(members, add_member, entity_type='team_member')

    async def _migrate_repositories(
        self, org: str, team: Team, new_slug: str
    ) -> List[MigrationResult]:
        try:
            repos = await self.list_resources(
                f'/orgs/{org}/teams/{team.slug}/repos', Repository
            )
        except Exception as e:
            return [
                self.failure(
                    'team_repository',
                    f'{org}/{team.slug}',
                    f'Failed to list repositories of team {team.name} in {org}: {e}',
                    org,
                )
            ]

        target = self.context.target_org

        async def grant(repo: Repository) -> MigrationResult:
            tier = repo.permission_tier()
            return await self.run_item(
                entity_type='team_repository',
                entity_id=f'{team.name}/{repo.name}',
                action=lambda: self.client.put_async(
                    f'/orgs/{target}/teams/{new_slug}/repos/{target}/{repo.name}',
                    data={'permission': tier},
                ),
                description=f'grant {team.name} {tier} access to {repo.name}',
                success_message=(
                    f'Granted {team.name} {tier} access to repository {repo.name}'
                ),
                account=org,
            )

        return await self.run_items(repos, grant, entity_type='team_repository')


class MemberInvitationPhase(MigrationPhase):
    """Invite the union of all source members to the target organization."""

    name = 'members'

    async def run(self, ledger: PhaseLedger) -> None:
        members: List[Member] = []
        for org in self.context.source_orgs:
            org_members = await self.list_resources(f'/orgs/{org}/members', Member)
            self.logger.info(f'Found {len(org_members)} members in {org}')
            members.extend(org_members)

        usernames = unique_logins(members)
        ledger.details['invitees'] = usernames
        self.logger.info(
            f'Inviting {len(usernames)} unique members to {self.context.target_org}'
        )

        ledger.extend(
            await self.run_items(usernames, self._invite, entity_type='membership')
        )

    async def _invite(self, username: str) -> MigrationResult:
        target = self.context.target_org
        return await self.run_item(
            entity_type='membership',
            entity_id=username,
            action=lambda: self.client.put_async(
                f'/orgs/{target}/memberships/{username}', data={'role': MEMBER_ROLE}
            ),
            description=f'invite {username}',
            success_message=f'Invited {username} to {target}',
            account=target,
        )


class WebhookMigrationPhase(MigrationPhase):
    """Recreate organization and repository webhooks on the target.

    Hooks are created unconditionally, so running the phase twice creates
    duplicates on the target.
    """

    name = 'webhooks'

    async def run(self, ledger: PhaseLedger) -> None:
        for org in self.context.source_orgs:
            hooks = await self.list_resources(f'/orgs/{org}/hooks', Webhook)
            ledger.extend(
                await self.run_items(
                    hooks, partial(self._create_org_hook, org), entity_type='org_webhook'
                )
            )

            repos = await self.list_resources(f'/orgs/{org}/repos', Repository)
            ledger.extend(
                await self.run_items(
                    repos,
                    partial(self._migrate_repository_hooks, org),
                    entity_type='repository_webhook',
                )
            )

    async def _create_org_hook(self, org: str, hook: Webhook) -> MigrationResult:
        target = self.context.target_org
        return await self.run_item(
            entity_type='org_webhook',
            entity_id=f'{org}/{hook.id or hook.name}',
            action=lambda: self.client.post_async(
                f'/orgs/{target}/hooks', data=hook.to_create_payload()
            ),
            description=f'create org webhook {hook.name} ({hook.target_url})',
            success_message=f'Created organization webhook {hook.name} ({hook.target_url})',
            account=org,
        )

    async def _migrate_repository_hooks(
        self, org: str, repo: Repository
    ) -> List[MigrationResult]:
        try:
            hooks = await self.list_resources(f'/repos/{org}/{repo.name}/hooks', Webhook)
        except Exception as e:
            return [
                self.failure(
                    'repository_webhook',
                    f'{org}/{repo.name}',
                    f'Failed to list webhooks of {org}/{repo.name}: {e}',
                    org,
                )
            ]

        target = self.context.target_org

        async def create(hook: Webhook) -> MigrationResult:
            return await self.run_item(
                entity_type='repository_webhook',
                entity_id=f'{repo.name}/{hook.id or hook.name}',
                action=lambda: self.client.post_async(
                    f'/repos/{target}/{repo.name}/hooks', data=hook.to_create_payload()
                ),
                description=f'create webhook {hook.name} in {repo.name}',
                success_message=f'Created webhook {hook.name} in repository {repo.name}',
                account=org,
            )

        return await self.run_items(hooks, create, entity_type='repository_webhook')


class SettingsNormalizationPhase(MigrationPhase):
    """Apply topics and branch protection to every target repository."""

    name = 'settings'

    async def run(self, ledger: PhaseLedger) -> None:
        target = self.context.target_org
        repos = await self.list_resources(f'/orgs/{target}/repos', Repository)
        self.logger.info(f'Normalizing settings for {len(repos)} repositories in {target}')
        ledger.extend(
            await self.run_items(
                repos, self._update_settings, entity_type='repository_settings'
            )
        )

    async def _update_settings(self, repo: Repository) -> MigrationResult:
        target = self.context.target_org
        topics = self.context.repo_topics
        protection = self.context.branch_protection.to_payload()
        branch = quote(repo.default_branch, safe='')

        async def apply():
            if topics:
                # Replaces the full topic list
                await self.client.put_async(
                    f'/repos/{target}/{repo.name}/topics', data={'names': topics}
                )
            return await self.client.put_async(
                f'/repos/{target}/{repo.name}/branches/{branch}/protection',
                data=protection,
            )

        return await self.run_item(
            entity_type='repository_settings',
            entity_id=f'{target}/{repo.name}',
            action=apply,
            description=f'update settings for {repo.name}',
            success_message=f'Updated settings for repository {repo.name}',
            account=target,
        )
