"""Tests for CLI interface."""

import pytest
from unittest.mock import AsyncMock, Mock, patch
from click.testing import CliRunner
from datetime import datetime
import tempfile
import os
from pathlib import Path

from github_org_migrate.cli.main import cli, init
from github_org_migrate.config.config import Config
from github_org_migrate.migration.orchestrator import MigrationSummary
from github_org_migrate.migration.strategy import PhaseLedger
from github_org_migrate.migration.verification import VerificationReport


def make_config(**migration):
    settings = {'source_orgs': ['src-a', 'src-b'], 'target_org': 'target'}
    settings.update(migration)
    return Config(github={'token': 'test-token'}, migration=settings)


def make_summary(missing_repositories=()):
    summary = MigrationSummary(started_at=datetime.now(), completed_at=datetime.now())
    summary.ledgers.append(PhaseLedger(phase='verification', started_at=datetime.now()))
    summary.verification = VerificationReport(
        expected_repositories=['r1', 'r2'],
        missing_repositories=list(missing_repositories),
    )
    return summary


class TestCLI:
    """Test CLI commands."""

    def setup_method(self):
        """Set up test fixtures."""
        self.runner = CliRunner()

    def test_cli_help(self):
        """Test CLI help command."""
        result = self.runner.invoke(cli, ['--help'])

        assert result.exit_code == 0
        assert 'GitHub Organization Migration Tool' in result.output
        assert 'init' in result.output
        assert 'migrate' in result.output
        assert 'verify' in result.output
        assert 'validate' in result.output
        assert 'status' in result.output

    def test_cli_version(self):
        """Test CLI version command."""
        result = self.runner.invoke(cli, ['--version'])

        assert result.exit_code == 0
        assert '0.1.0' in result.output

    def test_init_command(self):
        """Test init command."""
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = os.path.join(temp_dir, 'test_config.yaml')

            result = self.runner.invoke(init, ['--output', config_path])

            assert result.exit_code == 0
            assert 'Configuration template created' in result.output
            assert os.path.exists(config_path)

            with open(config_path, 'r') as f:
                content = f.read()
                assert 'github:' in content
                assert 'migration:' in content
                assert 'source_orgs:' in content
                assert 'branch_protection:' in content

    def test_init_command_default_output(self):
        """Test init command with default output."""
        with self.runner.isolated_filesystem():
            result = self.runner.invoke(init)

            assert result.exit_code == 0
            assert 'Configuration template created' in result.output
            assert os.path.exists('config.yaml')

    @patch('github_org_migrate.cli.main._load_config')
    @patch('github_org_migrate.cli.main._run_migration')
    def test_migrate_command_success(self, mock_run_migration, mock_load_config):
        """Test successful migrate command."""
        mock_load_config.return_value = make_config()

        result = self.runner.invoke(cli, ['migrate'])

        assert result.exit_code == 0
        assert 'Starting migration process' in result.output
        mock_load_config.assert_called_once()
        mock_run_migration.assert_called_once()
        assert mock_run_migration.call_args.args[1] is False

    @patch('github_org_migrate.cli.main._load_config')
    @patch('github_org_migrate.cli.main._run_migration')
    def test_migrate_command_dry_run(self, mock_run_migration, mock_load_config):
        """Test migrate command with dry run."""
        config = make_config()
        mock_load_config.return_value = config

        result = self.runner.invoke(cli, ['migrate', '--dry-run'])

        assert result.exit_code == 0
        assert 'dry-run mode' in result.output
        assert config.migration.dry_run is True
        mock_run_migration.assert_called_once_with(config, True)

    @patch('github_org_migrate.cli.main._load_config')
    @patch('github_org_migrate.cli.main._run_migration')
    def test_migrate_skip_decommission(self, mock_run_migration, mock_load_config):
        config = make_config()
        mock_load_config.return_value = config

        result = self.runner.invoke(cli, ['migrate', '--skip-decommission'])

        assert result.exit_code == 0
        assert config.migration.decommission is False

    @patch('github_org_migrate.cli.main._load_config')
    def test_migrate_command_config_not_found(self, mock_load_config):
        """Test migrate command when config is not found."""
        mock_load_config.side_effect = FileNotFoundError('Configuration file not found')

        result = self.runner.invoke(cli, ['migrate'])

        assert result.exit_code == 1
        assert 'Migration failed' in result.output

    @patch('github_org_migrate.cli.main._load_config')
    @patch('github_org_migrate.cli.main._run_migration')
    def test_migrate_command_engine_error(self, mock_run_migration, mock_load_config):
        mock_load_config.return_value = make_config()
        mock_run_migration.side_effect = ConnectionError('Cannot connect to GitHub')

        result = self.runner.invoke(cli, ['migrate'])

        assert result.exit_code == 1
        assert 'Cannot connect to GitHub' in result.output

    @patch('github_org_migrate.cli.main._load_config')
    def test_verify_command_reports_missing(self, mock_load_config):
        mock_load_config.return_value = make_config()
        mock_engine = Mock()
        mock_engine.verify = AsyncMock(return_value=make_summary(['r2']))

        with patch(
            'github_org_migrate.cli.main.MigrationEngine', return_value=mock_engine
        ):
            result = self.runner.invoke(cli, ['verify'])

        assert result.exit_code == 0
        assert 'Missing repositories: r2' in result.output

    @patch('github_org_migrate.cli.main._load_config')
    def test_verify_command_success(self, mock_load_config):
        mock_load_config.return_value = make_config()
        mock_engine = Mock()
        mock_engine.verify = AsyncMock(return_value=make_summary())

        with patch(
            'github_org_migrate.cli.main.MigrationEngine', return_value=mock_engine
        ):
            result = self.runner.invoke(cli, ['verify'])

        assert result.exit_code == 0
        assert 'All repositories and teams are present' in result.output

    @patch('github_org_migrate.cli.main._load_config')
    def test_validate_command_success(self, mock_load_config):
        """Test successful validate command."""
        mock_load_config.return_value = make_config()
        mock_engine = Mock()
        mock_engine._test_connectivity = Mock(return_value=None)

        with patch(
            'github_org_migrate.cli.main.MigrationEngine', return_value=mock_engine
        ):
            result = self.runner.invoke(cli, ['validate'])

        assert result.exit_code == 0
        assert 'Connectivity validation passed' in result.output
        assert 'Configuration validation completed' in result.output
        mock_engine.client.close.assert_called_once()

    @patch('github_org_migrate.cli.main._load_config')
    def test_validate_command_failure(self, mock_load_config):
        """Test validate command failure."""
        mock_load_config.side_effect = Exception('Validation failed')

        result = self.runner.invoke(cli, ['validate'])

        assert result.exit_code == 1
        assert 'Validation failed' in result.output

    @patch('github_org_migrate.cli.main._load_config')
    def test_status_command_success(self, mock_load_config):
        """Test successful status command."""
        mock_load_config.return_value = make_config(repo_topics=['migrated'])

        result = self.runner.invoke(cli, ['status'])

        assert result.exit_code == 0
        assert 'Migration Configuration' in result.output
        assert 'src-a, src-b' in result.output
        assert 'target' in result.output
        assert 'migrated' in result.output

    @patch('github_org_migrate.cli.main._load_config')
    def test_status_command_failure(self, mock_load_config):
        """Test status command failure."""
        mock_load_config.side_effect = Exception('Failed to load status')

        result = self.runner.invoke(cli, ['status'])

        assert result.exit_code == 1
        assert 'Failed to load status' in result.output

    def test_status_with_config_file(self):
        """Test status with a configuration file on the command line."""
        with self.runner.isolated_filesystem():
            make_config().to_file('migrate.yaml')

            result = self.runner.invoke(cli, ['--config', 'migrate.yaml', 'status'])

        assert result.exit_code == 0
        assert 'src-a, src-b' in result.output

    def test_verbose_flag(self):
        """Test verbose flag."""
        result = self.runner.invoke(cli, ['--verbose', '--help'])

        assert result.exit_code == 0

    @pytest.mark.asyncio
    @patch('github_org_migrate.cli.main.MigrationEngine')
    async def test_run_migration_function(self, mock_engine_class):
        """Test the _run_migration function."""
        from github_org_migrate.cli.main import _run_migration

        mock_engine = Mock()
        mock_engine.migrate = AsyncMock(return_value=make_summary())
        mock_engine.dry_run = AsyncMock(return_value=make_summary())
        mock_engine_class.return_value = mock_engine

        await _run_migration(make_config(), dry_run=False)
        mock_engine.migrate.assert_awaited_once()

        await _run_migration(make_config(), dry_run=True)
        mock_engine.dry_run.assert_awaited_once()


class TestConfigLoading:
    """Test configuration loading functions."""

    @patch('github_org_migrate.config.config.Config.from_file')
    def test_load_config_with_file(self, mock_from_file):
        """Test loading config from specified file."""
        from github_org_migrate.cli.main import _load_config

        mock_config = Mock(spec=Config)
        mock_from_file.return_value = mock_config

        mock_ctx = Mock()
        mock_ctx.obj = {'config_path': '/path/to/config.yaml'}

        config = _load_config(mock_ctx)

        assert config == mock_config
        mock_from_file.assert_called_once_with('/path/to/config.yaml')

    @patch('github_org_migrate.config.config.Config.from_file')
    def test_load_config_default_locations(self, mock_from_file):
        """Test loading config from default locations."""
        from github_org_migrate.cli.main import _load_config

        mock_config = Mock(spec=Config)
        mock_from_file.return_value = mock_config

        mock_ctx = Mock()
        mock_ctx.obj = {}

        with patch.object(
            Path, 'exists', autospec=True, side_effect=lambda self: str(self) == 'config.yml'
        ):
            config = _load_config(mock_ctx)

        assert config == mock_config
        mock_from_file.assert_called_once_with('config.yml')

    @patch('github_org_migrate.config.config.Config.from_env')
    def test_load_config_from_env(self, mock_from_env):
        """Test loading config from environment variables."""
        from github_org_migrate.cli.main import _load_config

        mock_config = Mock(spec=Config)
        mock_from_env.return_value = mock_config

        mock_ctx = Mock()
        mock_ctx.obj = {}

        with patch('pathlib.Path.exists', return_value=False):
            config = _load_config(mock_ctx)

        assert config == mock_config
        mock_from_env.assert_called_once()

    def test_load_config_not_found(self):
        """Test loading config when no config is found."""
        from github_org_migrate.cli.main import _load_config

        mock_ctx = Mock()
        mock_ctx.obj = {}

        with patch('pathlib.Path.exists', return_value=False):
            with patch(
                'github_org_migrate.config.config.Config.from_env',
                side_effect=ValueError('token: Field required'),
            ):
                with pytest.raises(FileNotFoundError):
                    _load_config(mock_ctx)


class TestCLIIntegration:
    """Test CLI integration scenarios."""

    def setup_method(self):
        """Set up test fixtures."""
        self.runner = CliRunner()

    def test_init_then_status(self):
        """Test a generated template is accepted by the status command."""
        with self.runner.isolated_filesystem():
            result = self.runner.invoke(init, ['--output', 'config.yaml'])
            assert result.exit_code == 0

            result = self.runner.invoke(cli, ['--config', 'config.yaml', 'status'])
            assert result.exit_code == 0
            assert 'target-org' in result.output
            assert os.path.exists('migration.log')

    @patch('github_org_migrate.cli.main.console.print_exception')
    def test_error_handling_with_verbose(self, mock_print_exception):
        """Test error handling with verbose flag."""
        with patch(
            'github_org_migrate.cli.main._load_config',
            side_effect=Exception('Test error'),
        ):
            result = self.runner.invoke(cli, ['--verbose', 'migrate'])

            assert result.exit_code == 1
            mock_print_exception.assert_called_once()
