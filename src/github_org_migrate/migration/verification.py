"""Post-migration reconciliation of source and target name sets."""

from typing import Iterable, List, Optional

from pydantic import BaseModel, Field

from ..models.repository import Repository
from ..models.team import Team
from .strategy import MigrationPhase, MigrationStatus, PhaseLedger


def find_missing(expected: Iterable[str], actual: Iterable[str]) -> List[str]:
    """Names in ``expected`` absent from ``actual``, in expected order."""
    present = set(actual)
    missing = []
    for name in dict.fromkeys(expected):
        if name not in present:
            missing.append(name)
    return missing


class VerificationReport(BaseModel):
    """Expected versus actual repository and team names."""

    expected_repositories: List[str] = Field(default_factory=list)
    actual_repositories: List[str] = Field(default_factory=list)
    missing_repositories: List[str] = Field(default_factory=list)

    expected_teams: List[str] = Field(default_factory=list)
    actual_teams: List[str] = Field(default_factory=list)
    missing_teams: List[str] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.missing_repositories and not self.missing_teams


class VerificationPhase(MigrationPhase):
    """Read-only check that every source repository and team name exists on the target.

    Only names are compared. Webhooks, permission grants, team membership
    and protection settings are not inspected, so a team present on both
    sides with different members still passes.
    """

    name = 'verification'

    def __init__(self, context):
        super().__init__(context)
        self.report: Optional[VerificationReport] = None

    async def run(self, ledger: PhaseLedger) -> None:
        self.report = None

        expected_repos: List[str] = []
        expected_teams: List[str] = []
        for org in self.context.source_orgs:
            repos = await self.list_resources(f'/orgs/{org}/repos', Repository)
            expected_repos.extend(repo.name for repo in repos)
        for org in self.context.source_orgs:
            teams = await self.list_resources(f'/orgs/{org}/teams', Team)
            expected_teams.extend(team.name for team in teams)

        target = self.context.target_org
        actual_repos = [
            repo.name
            for repo in await self.list_resources(f'/orgs/{target}/repos', Repository)
        ]
        actual_teams = [
            team.name for team in await self.list_resources(f'/orgs/{target}/teams', Team)
        ]

        report = VerificationReport(
            expected_repositories=list(dict.fromkeys(expected_repos)),
            actual_repositories=actual_repos,
            missing_repositories=find_missing(expected_repos, actual_repos),
            expected_teams=list(dict.fromkeys(expected_teams)),
            actual_teams=actual_teams,
            missing_teams=find_missing(expected_teams, actual_teams),
        )

        ledger.extend(
            [
                self._category_result(
                    'repositories', report.missing_repositories, target
                ),
                self._category_result('teams', report.missing_teams, target),
            ]
        )
        ledger.details['verification'] = report.model_dump()
        self.report = report

    def _category_result(self, category: str, missing: List[str], target: str):
        if missing:
            message = f'Missing {category}: {", ".join(missing)}'
            self.logger.warning(message)
            return self.create_result(
                entity_type='verification',
                entity_id=category,
                status=MigrationStatus.FAILED,
                success=False,
                error_message=message,
                account=target,
                metadata={'missing': missing},
            )

        self.logger.info(f'All {category} are present.')
        return self.create_result(
            entity_type='verification',
            entity_id=category,
            status=MigrationStatus.COMPLETED,
            account=target,
        )
