"""Migration engine - main entry point for migration operations."""

from typing import Optional
from loguru import logger

from ..config.config import Config
from ..api.client import GitHubClient, GitHubClientFactory
from .strategy import MigrationContext
from .orchestrator import MigrationOrchestrator, MigrationPlan, MigrationSummary


class MigrationEngine:
    """Main migration engine that coordinates the entire migration process."""

    def __init__(self, config: Config, client: Optional[GitHubClient] = None):
        """Initialize migration engine.

        Args:
            config: Migration configuration
            client: GitHub client to use instead of one built from config
        """
        self.config = config
        self.logger = logger.bind(component='MigrationEngine')

        self.client = client or GitHubClientFactory.create_client(config.github)

        self.context = MigrationContext(
            client=self.client,
            source_orgs=config.migration.source_orgs,
            target_org=config.migration.target_org,
            repo_topics=config.migration.repo_topics,
            branch_protection=config.branch_protection,
            dry_run=config.migration.dry_run,
            max_workers=config.migration.max_workers,
            per_page=config.migration.per_page,
        )

        self.orchestrator = MigrationOrchestrator(self.context)

    async def migrate(self, plan: Optional[MigrationPlan] = None) -> MigrationSummary:
        """Execute migration with the given plan.

        Args:
            plan: Migration plan (uses default if not provided)

        Returns:
            Migration summary
        """
        if plan is None:
            plan = self._create_default_plan()

        self.logger.info('Starting GitHub organization migration')

        try:
            self._test_connectivity()
            return await self.orchestrator.execute_migration(plan)

        except Exception as e:
            self.logger.error(f'Migration failed: {e}')
            raise
        finally:
            self.client.close()

    async def dry_run(self, plan: Optional[MigrationPlan] = None) -> MigrationSummary:
        """Perform a dry run of the migration.

        Args:
            plan: Migration plan (uses default if not provided)

        Returns:
            Migration summary (dry run results)
        """
        if plan is None:
            plan = self._create_default_plan()

        self.logger.info('Starting GitHub organization migration dry run')

        try:
            self._test_connectivity()
            return await self.orchestrator.dry_run_migration(plan)

        except Exception as e:
            self.logger.error(f'Dry run failed: {e}')
            raise
        finally:
            self.client.close()

    async def verify(self) -> MigrationSummary:
        """Run only the read-only verification phase."""
        return await self.migrate(MigrationPlan.verification_only())

    def cancel(self) -> None:
        """Stop the run cooperatively before the next phase or item."""
        self.logger.warning('Cancellation requested')
        self.context.cancel()

    def _create_default_plan(self) -> MigrationPlan:
        """Create default migration plan from configuration.

        Returns:
            Default migration plan
        """
        migration = self.config.migration
        return MigrationPlan(
            transfer=migration.transfer,
            teams=migration.teams,
            members=migration.members,
            webhooks=migration.webhooks,
            settings=migration.settings,
            verification=migration.verify,
            decommission=migration.decommission,
        )

    def _test_connectivity(self) -> None:
        """Test connectivity and authentication against GitHub.

        Raises:
            ConnectionError: If connectivity test fails
        """
        self.logger.info('Testing connectivity to GitHub')

        if not self.client.test_connection():
            raise ConnectionError('Cannot connect to GitHub with the configured token')

        rate_limit = self.client.get_rate_limit()
        if rate_limit:
            self.logger.info(
                f'Rate limit: {rate_limit.get("remaining")}/{rate_limit.get("limit")} '
                'requests remaining'
            )

        self.logger.info('Connectivity tests passed')
