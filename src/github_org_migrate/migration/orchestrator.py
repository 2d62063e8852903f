"""Migration orchestrator running the ordered phase pipeline."""

from datetime import datetime
from typing import Dict, List, Optional

from loguru import logger
from pydantic import BaseModel, Field

from .decommission import DecommissionPhase
from .strategy import (
    MemberInvitationPhase,
    MigrationContext,
    MigrationPhase,
    MigrationResult,
    PhaseLedger,
    SettingsNormalizationPhase,
    TeamMigrationPhase,
    TransferPhase,
    WebhookMigrationPhase,
)
from .verification import VerificationPhase, VerificationReport

EXECUTION_ORDER = [
    'transfer',
    'teams',
    'members',
    'webhooks',
    'settings',
    'verification',
    'decommission',
]


class MigrationPlan(BaseModel):
    """Which phases of the fixed pipeline to run."""

    transfer: bool = Field(default=True, description='Transfer repositories')
    teams: bool = Field(default=True, description='Migrate teams and permissions')
    members: bool = Field(default=True, description='Invite members')
    webhooks: bool = Field(default=True, description='Migrate webhooks')
    settings: bool = Field(default=True, description='Normalize repository settings')
    verification: bool = Field(default=True, description='Verify migration')
    decommission: bool = Field(default=True, description='Decommission sources')

    def enabled(self, phase: str) -> bool:
        return getattr(self, phase, False)

    @classmethod
    def verification_only(cls) -> 'MigrationPlan':
        return cls(
            transfer=False,
            teams=False,
            members=False,
            webhooks=False,
            settings=False,
            verification=True,
            decommission=False,
        )


class MigrationSummary(BaseModel):
    """Summary of one pipeline run."""

    started_at: datetime = Field(..., description='Migration start time')
    completed_at: Optional[datetime] = Field(
        default=None, description='Migration completion time'
    )
    dry_run: bool = Field(default=False, description='Run made no changes')
    cancelled: bool = Field(default=False, description='Run was cancelled')

    ledgers: List[PhaseLedger] = Field(
        default_factory=list, description='Ledgers in execution order'
    )
    verification: Optional[VerificationReport] = Field(
        default=None, description='Verification outcome, if the phase ran'
    )

    @property
    def results_by_phase(self) -> Dict[str, Dict[str, int]]:
        return {ledger.phase: ledger.summary() for ledger in self.ledgers}

    @property
    def failures(self) -> List[MigrationResult]:
        return [result for ledger in self.ledgers for result in ledger.failures]

    @property
    def phase_errors(self) -> Dict[str, str]:
        return {ledger.phase: ledger.error for ledger in self.ledgers if ledger.error}

    @property
    def successful_items(self) -> int:
        return sum(ledger.successful for ledger in self.ledgers)

    @property
    def failed_items(self) -> int:
        return sum(ledger.failed for ledger in self.ledgers)

    @property
    def skipped_items(self) -> int:
        return sum(ledger.skipped for ledger in self.ledgers)

    def ledger(self, phase: str) -> Optional[PhaseLedger]:
        for ledger in self.ledgers:
            if ledger.phase == phase:
                return ledger
        return None


class MigrationOrchestrator:
    """Runs the migration phases strictly in order.

    Each phase receives the previous phase's ledger and always runs,
    whatever that ledger reports.
    """

    def __init__(self, context: MigrationContext):
        """Initialize migration orchestrator.

        Args:
            context: Migration context with client and settings
        """
        self.context = context
        self.logger = logger.bind(component='MigrationOrchestrator')

        self.verification = VerificationPhase(context)
        self.phases: Dict[str, MigrationPhase] = {
            'transfer': TransferPhase(context),
            'teams': TeamMigrationPhase(context),
            'members': MemberInvitationPhase(context),
            'webhooks': WebhookMigrationPhase(context),
            'settings': SettingsNormalizationPhase(context),
            'verification': self.verification,
            'decommission': DecommissionPhase(context),
        }

    async def execute_migration(self, plan: MigrationPlan) -> MigrationSummary:
        """Execute the pipeline according to the plan.

        Args:
            plan: Which phases to run

        Returns:
            Migration summary with one ledger per phase that ran
        """
        self.logger.info(
            f'Starting migration of {", ".join(self.context.source_orgs)} '
            f'into {self.context.target_org}'
        )
        summary = MigrationSummary(started_at=datetime.now(), dry_run=self.context.dry_run)

        previous: Optional[PhaseLedger] = None
        for phase_name in EXECUTION_ORDER:
            if self.context.cancelled:
                self.logger.warning(f'Migration cancelled before {phase_name} phase')
                summary.cancelled = True
                break

            if not plan.enabled(phase_name):
                self.logger.info(f'Skipping {phase_name} phase (disabled in plan)')
                continue

            previous = await self.phases[phase_name].execute(previous)
            summary.ledgers.append(previous)

        if self.context.cancelled:
            summary.cancelled = True

        summary.verification = (
            self.verification.report if plan.verification else None
        )
        summary.completed_at = datetime.now()

        self.logger.info(
            f'Migration completed: {summary.successful_items} successful, '
            f'{summary.failed_items} failed, {summary.skipped_items} skipped'
        )
        for phase_name, error in summary.phase_errors.items():
            self.logger.warning(f'Phase {phase_name} aborted early: {error}')

        return summary

    async def dry_run_migration(self, plan: MigrationPlan) -> MigrationSummary:
        """Perform a dry run of the migration.

        Args:
            plan: Which phases to run

        Returns:
            Migration summary (dry run results)
        """
        previous_dry_run = self.context.dry_run
        self.context.dry_run = True

        try:
            self.logger.info('Starting migration dry run')
            return await self.execute_migration(plan)
        finally:
            self.context.dry_run = previous_dry_run
