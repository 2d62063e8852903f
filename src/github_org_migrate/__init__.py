"""GitHub Organization Migration Tool

Moves repositories, teams, memberships, webhooks and branch protection from
one or more source organizations into a target organization, verifies the
result and decommissions the sources.
"""

__version__ = '0.1.0'

from .cli.main import main

__all__ = ['main']
