"""Configuration management for GitHub Organization Migration Tool."""

from typing import Optional, Dict, Any, List
from pathlib import Path
import os

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
import yaml
from dotenv import load_dotenv

from ..models.protection import BranchProtectionPolicy


def _split_csv(v):
    """Accept either a list or a comma-separated string."""
    if v is None:
        return []
    if isinstance(v, str):
        return [item.strip() for item in v.split(',') if item.strip()]
    return [str(item).strip() for item in v if str(item).strip()]


class GitHubInstanceConfig(BaseModel):
    """Configuration for the GitHub API endpoint."""

    url: str = Field(default='https://api.github.com', description='GitHub API URL')
    token: str = Field(..., description='Personal access token')
    api_version: str = Field(default='2022-11-28', description='GitHub API version')
    timeout: int = Field(default=30, description='Request timeout in seconds')
    rate_limit_per_second: float = Field(
        default=10.0, description='API requests per second limit'
    )
    max_concurrent_requests: int = Field(
        default=10, description='Maximum in-flight requests'
    )
    max_retries: int = Field(
        default=3, description='Retries for transient failures and rate limits'
    )
    retry_after: float = Field(
        default=3.0, description='Fallback retry delay in seconds'
    )

    @field_validator('url')
    @classmethod
    def validate_url(cls, v):
        """Validate GitHub URL format."""
        if not v.startswith(('http://', 'https://')):
            raise ValueError('URL must start with http:// or https://')
        return v.rstrip('/')

    @field_validator('token')
    @classmethod
    def validate_token(cls, v):
        """Reject empty tokens."""
        if not v or not v.strip():
            raise ValueError('A GitHub token must be provided')
        return v.strip()

    @field_validator('rate_limit_per_second')
    @classmethod
    def validate_rate_limit(cls, v):
        """Validate rate limit is positive."""
        if v <= 0:
            raise ValueError('Rate limit must be positive')
        return v

    @field_validator('max_concurrent_requests')
    @classmethod
    def validate_max_concurrent_requests(cls, v):
        if v <= 0:
            raise ValueError('max_concurrent_requests must be positive')
        return v

    @field_validator('max_retries')
    @classmethod
    def validate_max_retries(cls, v):
        if v < 0:
            raise ValueError('max_retries cannot be negative')
        return v


class MigrationConfig(BaseModel):
    """Migration-specific configuration."""

    source_orgs: List[str] = Field(..., description='Source organizations, in order')
    target_org: str = Field(..., description='Target organization')
    repo_topics: List[str] = Field(
        default_factory=list, description='Topics applied to every target repo'
    )

    # Phase toggles
    transfer: bool = Field(default=True, description='Transfer repositories')
    teams: bool = Field(default=True, description='Migrate teams and permissions')
    members: bool = Field(default=True, description='Invite members')
    webhooks: bool = Field(default=True, description='Migrate webhooks')
    settings: bool = Field(default=True, description='Normalize repository settings')
    verify: bool = Field(default=True, description='Verify migration')
    decommission: bool = Field(default=True, description='Decommission sources')

    dry_run: bool = Field(default=False, description='Perform dry run without changes')
    max_workers: int = Field(default=5, description='Concurrent items per phase')
    per_page: int = Field(default=100, description='Page size for list queries')

    @field_validator('source_orgs', 'repo_topics', mode='before')
    @classmethod
    def split_lists(cls, v):
        """Split comma-separated values."""
        return _split_csv(v)

    @field_validator('source_orgs')
    @classmethod
    def validate_source_orgs(cls, v):
        """At least one source organization is required."""
        if not v:
            raise ValueError('At least one source organization must be provided')
        return v

    @field_validator('target_org')
    @classmethod
    def validate_target_org(cls, v):
        if not v or not v.strip():
            raise ValueError('Target organization must be provided')
        return v.strip()

    @field_validator('max_workers')
    @classmethod
    def validate_max_workers(cls, v):
        """Validate max workers is positive."""
        if v <= 0:
            raise ValueError('Max workers must be positive')
        return v

    @field_validator('per_page')
    @classmethod
    def validate_per_page(cls, v):
        if not 1 <= v <= 100:
            raise ValueError('per_page must be between 1 and 100')
        return v

    @model_validator(mode='after')
    def validate_target_not_source(self):
        """The target organization cannot also be a source."""
        if self.target_org.casefold() in {s.casefold() for s in self.source_orgs}:
            raise ValueError(
                f'Target organization {self.target_org} is also listed as a source'
            )
        return self


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default='INFO', description='Log level')
    file: Optional[str] = Field(default=None, description='Log file path')
    format: Optional[str] = Field(default=None, description='Log format')

    @field_validator('level')
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'Log level must be one of: {valid_levels}')
        return v.upper()


TEMPLATE_CONFIG: Dict[str, Any] = {
    'github': {
        'url': 'https://api.github.com',
        'token': 'your-github-personal-access-token',
        'timeout': 30,
        'rate_limit_per_second': 10.0,
        'max_concurrent_requests': 10,
        'max_retries': 3,
        'retry_after': 3,
    },
    'migration': {
        'source_orgs': ['source-org-one', 'source-org-two'],
        'target_org': 'target-org',
        'repo_topics': [],
        'transfer': True,
        'teams': True,
        'members': True,
        'webhooks': True,
        'settings': True,
        'verify': True,
        'decommission': True,
        'dry_run': False,
        'max_workers': 5,
    },
    'branch_protection': {
        'required_status_checks': None,
        'enforce_admins': True,
        'required_pull_request_reviews': {
            'dismiss_stale_reviews': True,
            'require_code_owner_reviews': True,
            'required_approving_review_count': 2,
        },
        'restrictions': None,
    },
    'logging': {
        'level': 'INFO',
        'file': 'migration.log',
    },
}


class Config(BaseModel):
    """Main configuration class for GitHub Organization Migration Tool."""

    model_config = ConfigDict(extra='forbid')

    github: GitHubInstanceConfig = Field(..., description='GitHub API settings')
    migration: MigrationConfig = Field(..., description='Migration settings')
    branch_protection: BranchProtectionPolicy = Field(
        default_factory=BranchProtectionPolicy,
        description='Protection applied to target default branches',
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description='Logging settings'
    )

    @classmethod
    def from_file(cls, config_path: str) -> 'Config':
        """Load configuration from YAML file."""
        config_file = Path(config_path)

        if not config_file.exists():
            raise FileNotFoundError(f'Configuration file not found: {config_path}')

        with open(config_file, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f)

        if not isinstance(config_data, dict):
            raise ValueError(f'Configuration file is not a mapping: {config_path}')

        return cls(**config_data)

    @classmethod
    def from_env(cls) -> 'Config':
        """Load configuration from environment variables."""
        # Load .env file if it exists
        load_dotenv()

        config_data = {
            'github': {
                'url': os.getenv('GITHUB_API_URL'),
                'token': os.getenv('GITHUB_TOKEN'),
            },
            'migration': {
                'source_orgs': os.getenv('SOURCE_ORGS'),
                'target_org': os.getenv('TARGET_ORG'),
                'repo_topics': os.getenv('REPO_TOPICS'),
                'max_workers': os.getenv('MIGRATION_MAX_WORKERS'),
                'dry_run': os.getenv('MIGRATION_DRY_RUN', 'false').lower() == 'true',
            },
            'logging': {
                'level': os.getenv('LOG_LEVEL', 'INFO'),
                'file': os.getenv('LOG_FILE'),
            },
        }

        # Remove None values
        config_data = cls._remove_none_values(config_data)

        return cls(**config_data)

    @staticmethod
    def _remove_none_values(data: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively remove None values from dictionary."""
        if isinstance(data, dict):
            return {
                k: Config._remove_none_values(v)
                for k, v in data.items()
                if v is not None
            }
        return data

    def to_file(self, config_path: str) -> None:
        """Save configuration to YAML file."""
        config_file = Path(config_path)
        config_file.parent.mkdir(parents=True, exist_ok=True)

        with open(config_file, 'w', encoding='utf-8') as f:
            yaml.dump(
                self.model_dump(),
                f,
                default_flow_style=False,
                indent=2,
                sort_keys=False,
            )

    @staticmethod
    def create_template(output_path: str) -> None:
        """Create a configuration template file."""
        config_file = Path(output_path)
        config_file.parent.mkdir(parents=True, exist_ok=True)

        with open(config_file, 'w', encoding='utf-8') as f:
            yaml.dump(
                TEMPLATE_CONFIG, f, default_flow_style=False, indent=2, sort_keys=False
            )
