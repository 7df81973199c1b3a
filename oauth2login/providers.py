# Copyright © The OAuth2 Login Developers
# See the AUTHORS file at the top-level directory of this distribution
#
# This file is part of OAuth2 Login. It is subject to the license terms
# in the LICENSE file found in the top-level directory of this
# distribution. No part of OAuth2 Login, including this file, may be copied,
# modified, propagated, or distributed except according to the terms
# contained in the LICENSE file.

"""
Clients for the OAuth2 provider endpoints.

A client is bound to a `ProviderConfig` and to the redirect URI of the login
view, and implements the three calls needed by the authorization code flow:
building the authorize URL, exchanging the code for an access token, and
fetching the resource owner details with that token.
"""

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from requests_oauthlib import OAuth2Session

from oauth2login.config import ProviderConfig

#: Token as returned by the token endpoint, including ``access_token``
AccessToken = Mapping[str, Any]


@runtime_checkable
class ProviderClient(Protocol):
    """Protocol for a client of an OAuth2 provider."""

    def authorization_url(self) -> tuple[str, str]:
        """Return the authorize URL and the CSRF state embedded in it."""

    def fetch_access_token(self, code: str) -> AccessToken:
        """Exchange an authorization code for an access token."""

    def fetch_resource_owner(self, token: AccessToken) -> dict[str, Any]:
        """Fetch the details of the authenticated user."""


class GenericProviderClient:
    """Client for a standard OAuth2 provider, using requests_oauthlib."""

    def __init__(self, config: ProviderConfig, redirect_uri: str) -> None:
        """
        Bind the client to a provider configuration.

        :param config: provider configuration
        :param redirect_uri: absolute URL the provider sends the user back to
        """
        self.config = config
        self.redirect_uri = redirect_uri

    def authorization_url(self) -> tuple[str, str]:
        """Return the authorize URL and the CSRF state embedded in it."""
        oauth = OAuth2Session(
            self.config.client_id,
            scope=list(self.config.scopes),
            redirect_uri=self.redirect_uri,
        )
        url, state = oauth.authorization_url(self.config.authorize_url)
        assert isinstance(url, str)
        assert isinstance(state, str)
        return url, state

    def fetch_access_token(self, code: str) -> AccessToken:
        """Exchange an authorization code for an access token."""
        # No scope in this session: providers may legitimately grant a
        # different set than the one requested
        oauth = OAuth2Session(
            self.config.client_id, redirect_uri=self.redirect_uri
        )
        token = oauth.fetch_token(
            self.config.access_token_url,
            code=code,
            client_secret=self.config.client_secret,
            include_client_id=True,
        )
        return dict(token)

    def fetch_resource_owner(self, token: AccessToken) -> dict[str, Any]:
        """
        Fetch the details of the authenticated user.

        :raises requests.HTTPError: if the provider returns an error status
        :raises ValueError: if the response is not a JSON object
        """
        oauth = OAuth2Session(self.config.client_id, token=dict(token))
        with oauth.get(self.config.resource_owner_details_url) as r:
            r.raise_for_status()
            data = r.json()
        if not isinstance(data, dict):
            raise ValueError(
                f"{self.config.resource_owner_details_url}: user details"
                f" are a {type(data).__name__}, not a JSON object"
            )
        return data
