# Copyright © The OAuth2 Login Developers
# See the AUTHORS file at the top-level directory of this distribution
#
# This file is part of OAuth2 Login. It is subject to the license terms
# in the LICENSE file found in the top-level directory of this
# distribution. No part of OAuth2 Login, including this file, may be copied,
# modified, propagated, or distributed except according to the terms
# contained in the LICENSE file.

"""
Configuration of the external OAuth2 provider.

This is configured by the OAUTH2_LOGIN variable in django settings, a dict
that is validated into a `ProviderConfig`.

Example::

    OAUTH2_LOGIN = {
        "name": "sso",
        "label": "Company SSO",
        "client_id": "123client_id",
        "client_secret": "123client_secret",
        "authorize_url": "https://sso.example.org/oauth/authorize",
        "access_token_url": "https://sso.example.org/oauth/token",
        "resource_owner_details_url": "https://sso.example.org/oauth/userinfo",
        "scopes": "openid,profile,email",
        "identifier_attribute": "email",
        "username_key": "preferred_username",
        "email_key": "email",
        "display_name_key": "name",
        "autocreate_users": True,
        "autocreate_permissions": {"auth.group": {"view": True}},
        "autocreate_roles": ["staff"],
    }

The `autocreate_*` settings are only used when a local account is created
for a remote user that does not match any existing one.
"""

from enum import StrEnum
from typing import Annotated, Any

import pydantic
from pydantic import BeforeValidator, ConfigDict, Field

from oauth2login.oauth2login_utils import split_scopes

SETTING_NAME = "OAUTH2_LOGIN"


class IdentifierAttribute(StrEnum):
    """Provider attribute used to match local accounts."""

    USERNAME = "username"
    EMAIL = "email"


#: Permissions granted to new users: ``{"app_label.model": {"action": bool}}``
PermissionSet = dict[str, dict[str, bool]]


class ProviderConfig(pydantic.BaseModel):
    """Immutable configuration of the OAuth2 login."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(
        "oauth2",
        title="Authentication method name",
        description="Value of the authMethod parameter selecting this login",
    )
    label: str = Field(
        "OAuth2",
        title="Label",
        description="User-visible name of the login method",
    )
    client_id: str = Field(title="Client ID")
    client_secret: str = Field(title="Client Secret")
    redirect_uri: str | None = Field(
        None,
        title="Redirect URI",
        description="Defaults to the absolute URL of the login view",
    )
    authorize_url: str = Field(title="Authorize URL")
    access_token_url: str = Field(title="Access Token URL")
    resource_owner_details_url: str = Field(title="User Details URL")
    scopes: Annotated[tuple[str, ...], BeforeValidator(split_scopes)] = Field(
        (),
        title="Scopes",
        description="Comma-separated list of scopes",
    )
    identifier_attribute: IdentifierAttribute = Field(
        IdentifierAttribute.USERNAME,
        title="Identifier attribute",
        description=(
            "Attribute used to match the remote user to a local account"
        ),
    )
    username_key: str = Field(
        title="Key for username in user details", min_length=1
    )
    email_key: str = Field(
        "email", title="Key for email in user details", min_length=1
    )
    display_name_key: str = Field(
        "name", title="Key for display name in user details", min_length=1
    )
    is_default: bool = Field(
        False,
        title="Use as default login",
        description=(
            "Log in with this provider unless another authentication method"
            " is explicitly requested"
        ),
    )
    autocreate_users: bool = Field(
        False,
        title="Create new users",
        description=(
            "Create a local account for remote users that do not have one"
        ),
    )
    autocreate_permissions: PermissionSet = Field(
        default_factory=dict,
        title="Global permissions for new users",
    )
    autocreate_roles: tuple[str, ...] = Field(
        (),
        title="Roles for new users",
        description="Names of the groups new users are added to, in order",
    )

    @property
    def identifier_key(self) -> str:
        """Return the user details key holding the identifier."""
        if self.identifier_attribute == IdentifierAttribute.EMAIL:
            return self.email_key
        return self.username_key


def load(value: Any) -> ProviderConfig:
    """
    Validate a configuration dict.

    :raises ImproperlyConfigured: if the configuration is not valid
    """
    from django.core.exceptions import ImproperlyConfigured

    if isinstance(value, ProviderConfig):
        return value
    try:
        return ProviderConfig.model_validate(value)
    except pydantic.ValidationError as exc:
        raise ImproperlyConfigured(
            f"{SETTING_NAME} is not valid: {exc}"
        ) from exc


def get_config() -> ProviderConfig:
    """
    Load the provider configuration from django settings.

    :raises ImproperlyConfigured: if the setting is missing or invalid
    """
    from django.conf import settings
    from django.core.exceptions import ImproperlyConfigured

    value = getattr(settings, SETTING_NAME, None)
    if value is None:
        raise ImproperlyConfigured(
            f"OAuth2 login requested, but {SETTING_NAME} is not defined"
            " in settings"
        )
    return load(value)
