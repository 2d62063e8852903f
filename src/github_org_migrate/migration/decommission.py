"""Destructive cleanup of source organizations."""

from functools import partial

from ..models.member import Member
from ..models.repository import Repository
from .strategy import MigrationPhase, MigrationResult, PhaseLedger


class DecommissionPhase(MigrationPhase):
    """Remove members from and archive repositories of each source organization.

    Irreversible. Runs regardless of the verification outcome; the
    organizations themselves must be deleted by hand.
    """

    name = 'decommission'

    async def run(self, ledger: PhaseLedger) -> None:
        for org in self.context.source_orgs:
            members = await self.list_resources(f'/orgs/{org}/members', Member)
            ledger.extend(
                await self.run_items(
                    members, partial(self._remove_member, org), entity_type='member'
                )
            )

            repos = await self.list_resources(f'/orgs/{org}/repos', Repository)
            ledger.extend(
                await self.run_items(
                    repos, partial(self._archive, org), entity_type='repository'
                )
            )

            if self.context.cancelled:
                break

            self.logger.info(
                f'Organization {org} is ready for deletion. '
                'Please proceed manually if desired.'
            )

    async def _remove_member(self, org: str, member: Member) -> MigrationResult:
        return await self.run_item(
            entity_type='member',
            entity_id=member.login,
            action=lambda: self.client.delete_async(
                f'/orgs/{org}/members/{member.login}'
            ),
            description=f'remove {member.login} from {org}',
            success_message=f'Removed {member.login} from {org}',
            account=org,
        )

    async def _archive(self, org: str, repo: Repository) -> MigrationResult:
        return await self.run_item(
            entity_type='repository',
            entity_id=f'{org}/{repo.name}',
            action=lambda: self.client.patch_async(
                f'/repos/{org}/{repo.name}', data={'archived': True}
            ),
            description=f'archive {repo.name}',
            success_message=f'Archived repository {repo.name} in {org}',
            account=org,
        )
