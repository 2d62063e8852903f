"""Webhook entity models."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Webhook(BaseModel):
    """Organization or repository webhook."""

    model_config = ConfigDict(extra='ignore')

    id: Optional[int] = Field(default=None, description='Hook ID')
    name: str = Field(default='web', description='Hook name')
    config: Dict[str, Any] = Field(default_factory=dict, description='Hook config')
    events: List[str] = Field(default_factory=lambda: ['push'], description='Events')
    active: bool = Field(default=True, description='Hook is active')

    def to_create_payload(self) -> Dict[str, Any]:
        """Body for recreating this hook verbatim elsewhere."""
        return {
            'name': self.name,
            'config': self.config,
            'events': self.events,
            'active': self.active,
        }

    @property
    def target_url(self) -> Optional[str]:
        return self.config.get('url')
