"""Migration engine and phases."""

from .strategy import (
    MigrationPhase,
    MigrationResult,
    MigrationContext,
    MigrationStatus,
    PhaseLedger,
    TransferPhase,
    TeamMigrationPhase,
    MemberInvitationPhase,
    WebhookMigrationPhase,
    SettingsNormalizationPhase,
)
from .verification import VerificationPhase, VerificationReport, find_missing
from .decommission import DecommissionPhase
from .orchestrator import MigrationOrchestrator, MigrationPlan, MigrationSummary
from .engine import MigrationEngine

__all__ = [
    'MigrationPhase',
    'MigrationResult',
    'MigrationContext',
    'MigrationStatus',
    'PhaseLedger',
    'TransferPhase',
    'TeamMigrationPhase',
    'MemberInvitationPhase',
    'WebhookMigrationPhase',
    'SettingsNormalizationPhase',
    'VerificationPhase',
    'VerificationReport',
    'find_missing',
    'DecommissionPhase',
    'MigrationOrchestrator',
    'MigrationPlan',
    'MigrationSummary',
    'MigrationEngine',
]
