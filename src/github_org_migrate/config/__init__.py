"""Configuration models and loaders."""

from .config import Config, GitHubInstanceConfig, LoggingConfig, MigrationConfig

__all__ = ['Config', 'GitHubInstanceConfig', 'LoggingConfig', 'MigrationConfig']
