"""Shared fixtures: an in-memory GitHub behind the real client."""

import re
import sys
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import unquote, urlparse

import pytest
from loguru import logger

from github_org_migrate.api.client import APIResponse, GitHubClient
from github_org_migrate.api.exceptions import (
    GitHubAPIError,
    GitHubConflictError,
    GitHubNotFoundError,
)
from github_org_migrate.config.config import GitHubInstanceConfig
from github_org_migrate.migration.strategy import MigrationContext


class FakeOrg:
    """State of one organization."""

    def __init__(self, login: str):
        self.login = login
        self.repos: Dict[str, Dict[str, Any]] = {}
        self.teams: Dict[str, Dict[str, Any]] = {}
        self.team_members: Dict[str, List[str]] = {}
        self.team_repos: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.members: List[str] = []
        self.invitations: List[str] = []
        self.hooks: List[Dict[str, Any]] = []
        self.repo_hooks: Dict[str, List[Dict[str, Any]]] = {}
        self.topics: Dict[str, List[str]] = {}
        self.protection: Dict[Tuple[str, str], Dict[str, Any]] = {}

    def repo_json(self, name: str, default_branch: str = 'main') -> Dict[str, Any]:
        return {
            'id': abs(hash((self.login, name))) % 100000,
            'name': name,
            'full_name': f'{self.login}/{name}',
            'owner': {'login': self.login, 'type': 'Organization'},
            'private': True,
            'default_branch': default_branch,
            'archived': False,
        }

    def add_repo(
        self,
        name: str,
        default_branch: str = 'main',
        hooks: Optional[List[Dict[str, Any]]] = None,
    ) -> 'FakeOrg':
        self.repos[name] = self.repo_json(name, default_branch)
        self.repo_hooks[name] = list(hooks or [])
        return self

    def add_team(
        self,
        name: str,
        members: Tuple[str, ...] = (),
        repos: Optional[Dict[str, Dict[str, bool]]] = None,
        description: Optional[str] = None,
        privacy: str = 'closed',
    ) -> 'FakeOrg':
        slug = slugify(name)
        self.teams[slug] = {
            'id': len(self.teams) + 1,
            'name': name,
            'slug': slug,
            'description': description,
            'privacy': privacy,
        }
        self.team_members[slug] = list(members)
        self.team_repos[slug] = {}
        for repo_name, permissions in (repos or {}).items():
            repo = self.repo_json(repo_name)
            repo['permissions'] = permissions
            self.team_repos[slug][repo_name] = repo
        return self

    def add_members(self, *logins: str) -> 'FakeOrg':
        self.members.extend(logins)
        return self

    def add_hook(self, url: str, events=('push',)) -> 'FakeOrg':
        self.hooks.append(make_hook(len(self.hooks) + 1, url, events))
        return self


def slugify(name: str) -> str:
    return name.lower().replace(' ', '-')


def make_hook(hook_id: int, url: str, events=('push',)) -> Dict[str, Any]:
    return {
        'id': hook_id,
        'name': 'web',
        'config': {'url': url, 'content_type': 'json'},
        'events': list(events),
        'active': True,
    }


SEGMENT = r'([^/]+)'


class FakeGitHub(GitHubClient):
    """GitHub client whose single-request transport is an in-memory service.

    Only ``_send`` is replaced, so retries, pacing and pagination run the
    real client code.
    """

    def __init__(self, *org_logins: str):
        super().__init__(
            GitHubInstanceConfig(
                token='test-token', rate_limit_per_second=1000, retry_after=0
            )
        )
        self.orgs: Dict[str, FakeOrg] = {login: FakeOrg(login) for login in org_logins}
        self.calls: List[Tuple[str, str, Optional[Dict[str, Any]]]] = []
        self._failures: List[Tuple[str, str, GitHubAPIError]] = []

        routes: List[Tuple[str, str, Callable]] = [
            ('GET', f'/orgs/{SEGMENT}/repos', self._list_repos),
            ('POST', f'/repos/{SEGMENT}/{SEGMENT}/transfer', self._transfer),
            ('PATCH', f'/repos/{SEGMENT}/{SEGMENT}', self._update_repo),
            ('GET', f'/orgs/{SEGMENT}/teams', self._list_teams),
            ('POST', f'/orgs/{SEGMENT}/teams', self._create_team),
            (
                'GET',
                f'/orgs/{SEGMENT}/teams/{SEGMENT}/members',
                self._list_team_members,
            ),
            (
                'PUT',
                f'/orgs/{SEGMENT}/teams/{SEGMENT}/memberships/{SEGMENT}',
                self._add_team_member,
            ),
            ('GET', f'/orgs/{SEGMENT}/teams/{SEGMENT}/repos', self._list_team_repos),
            (
                'PUT',
                f'/orgs/{SEGMENT}/teams/{SEGMENT}/repos/{SEGMENT}/{SEGMENT}',
                self._grant_team_repo,
            ),
            ('GET', f'/orgs/{SEGMENT}/members', self._list_members),
            ('PUT', f'/orgs/{SEGMENT}/memberships/{SEGMENT}', self._invite),
            ('DELETE', f'/orgs/{SEGMENT}/members/{SEGMENT}', self._remove_member),
            ('GET', f'/orgs/{SEGMENT}/hooks', self._list_org_hooks),
            ('POST', f'/orgs/{SEGMENT}/hooks', self._create_org_hook),
            ('GET', f'/repos/{SEGMENT}/{SEGMENT}/hooks', self._list_repo_hooks),
            ('POST', f'/repos/{SEGMENT}/{SEGMENT}/hooks', self._create_repo_hook),
            ('PUT', f'/repos/{SEGMENT}/{SEGMENT}/topics', self._replace_topics),
            (
                'PUT',
                f'/repos/{SEGMENT}/{SEGMENT}/branches/{SEGMENT}/protection',
                self._protect,
            ),
        ]
        self.routes = [(m, re.compile(p), h) for m, p, h in routes]

    # Test helpers

    def org(self, login: str) -> FakeOrg:
        if login not in self.orgs:
            self.orgs[login] = FakeOrg(login)
        return self.orgs[login]

    def fail(self, method: str, pattern: str, error: GitHubAPIError) -> None:
        """Raise ``error`` for every request whose path fully matches ``pattern``."""
        self._failures.append((method, pattern, error))

    def requests_made(self, method: Optional[str] = None) -> List[Tuple[str, str]]:
        return [(m, p) for m, p, _ in self.calls if method is None or m == method]

    def writes(self) -> List[Tuple[str, str]]:
        return [(m, p) for m, p, _ in self.calls if m != 'GET']

    def test_connection(self) -> bool:
        return True

    def get_rate_limit(self):
        return None

    # Transport

    async def _send(self, method, endpoint, params=None, data=None) -> APIResponse:
        path = unquote(urlparse(endpoint).path) if '://' in endpoint else endpoint
        self.calls.append((method, path, data))

        for fail_method, pattern, error in self._failures:
            if fail_method == method and re.fullmatch(pattern, path):
                raise error

        for route_method, regex, handler in self.routes:
            match = regex.fullmatch(path)
            if route_method == method and match:
                args = [unquote(group) for group in match.groups()]
                status, body = handler(*args, data=data)
                return APIResponse(
                    status_code=status, data=body, headers={}, success=True
                )

        raise GitHubNotFoundError('Resource not found', status_code=404)

    def _get_org(self, login: str) -> FakeOrg:
        if login not in self.orgs:
            raise GitHubNotFoundError('Resource not found', status_code=404)
        return self.orgs[login]

    def _get_repo(self, login: str, name: str) -> Dict[str, Any]:
        org = self._get_org(login)
        if name not in org.repos:
            raise GitHubNotFoundError('Resource not found', status_code=404)
        return org.repos[name]

    def _get_team(self, login: str, slug: str) -> Dict[str, Any]:
        org = self._get_org(login)
        if slug not in org.teams:
            raise GitHubNotFoundError('Resource not found', status_code=404)
        return org.teams[slug]

    # Handlers

    def _list_repos(self, login, data=None):
        return 200, list(self._get_org(login).repos.values())

    def _transfer(self, login, name, data=None):
        source = self._get_org(login)
        self._get_repo(login, name)
        new_owner = data['new_owner']
        target = self._get_org(new_owner)
        if name in target.repos:
            raise GitHubConflictError(
                'Conflict: Repository has already been taken', status_code=422
            )

        repo = source.repos.pop(name)
        hooks = source.repo_hooks.pop(name, [])
        target.add_repo(name, repo['default_branch'], hooks)
        return 202, target.repos[name]

    def _update_repo(self, login, name, data=None):
        repo = self._get_repo(login, name)
        repo.update(data or {})
        return 200, repo

    def _list_teams(self, login, data=None):
        return 200, list(self._get_org(login).teams.values())

    def _create_team(self, login, data=None):
        org = self._get_org(login)
        if any(team['name'] == data['name'] for team in org.teams.values()):
            raise GitHubConflictError(
                'Conflict: Validation Failed (Name must be unique for this org)',
                status_code=422,
            )
        org.add_team(
            data['name'],
            description=data.get('description'),
            privacy=data.get('privacy', 'secret'),
        )
        return 201, org.teams[slugify(data['name'])]

    def _list_team_members(self, login, slug, data=None):
        self._get_team(login, slug)
        org = self.orgs[login]
        return 200, [{'login': member} for member in org.team_members[slug]]

    def _add_team_member(self, login, slug, username, data=None):
        self._get_team(login, slug)
        members = self.orgs[login].team_members[slug]
        if username not in members:
            members.append(username)
        return 200, {'state': 'active', 'role': data['role']}

    def _list_team_repos(self, login, slug, data=None):
        self._get_team(login, slug)
        return 200, list(self.orgs[login].team_repos[slug].values())

    def _grant_team_repo(self, login, slug, owner, name, data=None):
        self._get_team(login, slug)
        repo = dict(self._get_repo(owner, name))
        repo['permission'] = data['permission']
        self.orgs[login].team_repos[slug][name] = repo
        return 204, None

    def _list_members(self, login, data=None):
        return 200, [{'login': member} for member in self._get_org(login).members]

    def _invite(self, login, username, data=None):
        org = self._get_org(login)
        org.invitations.append(username)
        return 200, {'state': 'pending', 'role': data['role']}

    def _remove_member(self, login, username, data=None):
        org = self._get_org(login)
        if username not in org.members:
            raise GitHubNotFoundError('Resource not found', status_code=404)
        org.members.remove(username)
        return 204, None

    def _list_org_hooks(self, login, data=None):
        return 200, list(self._get_org(login).hooks)

    def _create_org_hook(self, login, data=None):
        org = self._get_org(login)
        hook = dict(data, id=len(org.hooks) + 1)
        org.hooks.append(hook)
        return 201, hook

    def _list_repo_hooks(self, login, name, data=None):
        self._get_repo(login, name)
        return 200, list(self.orgs[login].repo_hooks.get(name, []))

    def _create_repo_hook(self, login, name, data=None):
        self._get_repo(login, name)
        hooks = self.orgs[login].repo_hooks.setdefault(name, [])
        hook = dict(data, id=len(hooks) + 1)
        hooks.append(hook)
        return 201, hook

    def _replace_topics(self, login, name, data=None):
        self._get_repo(login, name)
        self.orgs[login].topics[name] = list(data['names'])
        return 200, {'names': list(data['names'])}

    def _protect(self, login, name, branch, data=None):
        self._get_repo(login, name)
        self.orgs[login].protection[(name, branch)] = data
        url = f'/repos/{login}/{name}/branches/{branch}/protection'
        return 200, dict(data, url=url)


@pytest.fixture
def fake_github():
    """Two source organizations and an empty target."""
    return FakeGitHub('src-a', 'src-b', 'target')


@pytest.fixture
def make_context(fake_github):
    """Build a migration context over the fake service."""

    def _make(**overrides) -> MigrationContext:
        settings = {
            'client': fake_github,
            'source_orgs': ['src-a', 'src-b'],
            'target_org': 'target',
            'max_workers': 1,
        }
        settings.update(overrides)
        return MigrationContext(**settings)

    return _make


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop sinks added by CLI commands, whose streams close with the runner."""
    yield
    logger.remove()
    logger.add(sys.stderr, level='DEBUG')


@pytest.fixture
def log_messages():
    """Messages logged through loguru while the test runs."""
    messages: List[str] = []
    handler_id = logger.add(lambda message: messages.append(message.record['message']))
    yield messages
    logger.remove(handler_id)
