"""Models for Jira tenants and Connect lifecycle callbacks."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class InstallationState(str, Enum):
    """Add-on state of a Jira tenant."""

    INSTALLED = "installed"
    ENABLED = "enabled"
    DISABLED = "disabled"
    UNINSTALLED = "uninstalled"


class LifecycleEvent(str, Enum):
    """Connect lifecycle callbacks Jira posts to the app."""

    INSTALLED = "installed"
    ENABLED = "enabled"
    DISABLED = "disabled"
    UNINSTALLED = "uninstalled"

    @property
    def target_state(self) -> InstallationState:
        return InstallationState(self.value)

    @property
    def requires_signature(self) -> bool:
        # The shared secret arrives inside the installed payload
        return self is not LifecycleEvent.INSTALLED


@dataclass
class TenantRecord:
    """One Jira instance that installed the add-on."""

    host: str
    shared_secret: str
    installation_state: InstallationState
    client_key: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class LifecyclePayload(BaseModel):
    """Body of a lifecycle callback.

    Accepts both the short field names and the ones Jira sends
    (baseUrl, sharedSecret, clientKey).
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    host: str | None = Field(default=None, validation_alias=AliasChoices("host", "baseUrl"))
    secret: str | None = Field(
        default=None, validation_alias=AliasChoices("secret", "sharedSecret")
    )
    client_key: str | None = Field(
        default=None, validation_alias=AliasChoices("client_key", "clientKey")
    )
    event_type: str | None = Field(
        default=None, validation_alias=AliasChoices("event_type", "eventType")
    )
