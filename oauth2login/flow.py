# Copyright © The OAuth2 Login Developers
# See the AUTHORS file at the top-level directory of this distribution
#
# This file is part of OAuth2 Login. It is subject to the license terms
# in the LICENSE file found in the top-level directory of this
# distribution. No part of OAuth2 Login, including this file, may be copied,
# modified, propagated, or distributed except according to the terms
# contained in the LICENSE file.

"""
Authorization code flow with the external OAuth2 provider.

`AuthorizationFlow` is run once per request to the login view, and performs
at most one step of the round trip:

* without a ``code`` parameter, it redirects the user agent to the provider
  (if this login method is selected), storing a fresh CSRF state;
* with a ``code`` parameter, it validates the state, exchanges the code for
  an access token, fetches the user details and resolves the identifier of
  the remote user.

Failures are raised as `OAuth2LoginError` subclasses.
"""

import logging
from collections.abc import Mapping
from enum import StrEnum
from typing import Any, NamedTuple

from django.utils.crypto import constant_time_compare

from oauth2login.config import ProviderConfig
from oauth2login.exceptions import (
    OAuth2LoginError,
    ProtocolError,
    ProviderError,
    StateMismatchError,
)
from oauth2login.identity import ResolvedIdentity, resolve_identity
from oauth2login.providers import AccessToken, ProviderClient
from oauth2login.state import FlowStateStore

log = logging.getLogger("oauth2login")


class FlowStep(StrEnum):
    """Steps of the authorization code flow."""

    IDLE = "idle"
    REDIRECT_ISSUED = "redirect-issued"
    CALLBACK_PENDING = "callback-pending"
    STATE_VALIDATED = "state-validated"
    TOKEN_EXCHANGED = "token-exchanged"
    RESOURCE_FETCHED = "resource-fetched"
    RESOLVED = "resolved"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class FlowRedirect(NamedTuple):
    """Send the user agent to the provider authorize URL."""

    url: str


class FlowSuccess(NamedTuple):
    """The remote user has been authenticated and identified."""

    identity: ResolvedIdentity
    resource_data: dict[str, Any]


def should_activate(
    name: str, auth_method: str | None, is_default: bool
) -> bool:
    """
    Check if a login request without a code is for this provider.

    An explicitly requested authentication method always wins; without one,
    the provider handles the request only if it is the default login.
    """
    if auth_method:
        return auth_method == name
    return is_default


class AuthorizationFlow:
    """Run the authorization code flow for one request."""

    def __init__(
        self,
        config: ProviderConfig,
        client: ProviderClient,
        state_store: FlowStateStore,
    ) -> None:
        """
        Set up the flow.

        :param config: provider configuration
        :param client: client for the provider endpoints
        :param state_store: session storage for the pending CSRF state
        """
        self.config = config
        self.client = client
        self.state_store = state_store
        self.step = FlowStep.IDLE

    def _transition(self, step: FlowStep) -> None:
        log.debug("oauth2 flow: %s -> %s", self.step, step)
        self.step = step

    def run(
        self, params: Mapping[str, str]
    ) -> FlowRedirect | FlowSuccess | None:
        """
        Handle the parameters of a login request.

        :param params: query parameters of the request
        :return: None if the request is left to other authentication methods,
          a FlowRedirect to send the user to the provider, or a FlowSuccess
          with the identity of the remote user
        :raises OAuth2LoginError: if the login failed
        """
        try:
            return self._run(params)
        except OAuth2LoginError as exc:
            self._transition(FlowStep.REJECTED)
            log.warning("oauth2 login rejected: %s", exc)
            raise

    def _run(
        self, params: Mapping[str, str]
    ) -> FlowRedirect | FlowSuccess | None:
        if error := params.get("error"):
            raise ProviderError(params.get("error_description") or error)

        if not (code := params.get("code")):
            if not should_activate(
                self.config.name,
                params.get("authMethod"),
                self.config.is_default,
            ):
                return None
            return self.issue_redirect()

        self._transition(FlowStep.CALLBACK_PENDING)
        self.validate_state(params.get("state"))
        token = self.exchange_code(code)
        resource_data = self.fetch_resource_owner(token)

        identity = resolve_identity(resource_data, self.config)
        self._transition(FlowStep.RESOLVED)

        log.info("%s: authenticated by the OAuth2 provider", identity)
        self._transition(FlowStep.ACCEPTED)
        return FlowSuccess(identity, resource_data)

    def issue_redirect(self) -> FlowRedirect:
        """Store a new CSRF state and redirect to the provider."""
        url, state = self.client.authorization_url()
        self.state_store.put(state)
        self._transition(FlowStep.REDIRECT_ISSUED)
        return FlowRedirect(url)

    def validate_state(self, remote_state: str | None) -> None:
        """
        Check the state sent back by the provider.

        The stored state is consumed whatever the outcome, so that it cannot
        be replayed.

        :raises StateMismatchError: if the state does not match
        """
        expected_state = self.state_store.pop()
        if (
            remote_state is None
            or expected_state is None
            or not constant_time_compare(remote_state, expected_state)
        ):
            raise StateMismatchError()
        self._transition(FlowStep.STATE_VALIDATED)

    def exchange_code(self, code: str) -> AccessToken:
        """
        Exchange the authorization code for an access token.

        :raises ProtocolError: if the token cannot be retrieved
        """
        try:
            token = self.client.fetch_access_token(code)
        except Exception as exc:
            log.warning("cannot retrieve access token", exc_info=exc)
            raise ProtocolError("Failed to retrieve access token") from exc
        self._transition(FlowStep.TOKEN_EXCHANGED)
        return token

    def fetch_resource_owner(self, token: AccessToken) -> dict[str, Any]:
        """
        Fetch the user details with the access token.

        :raises ProtocolError: if the user details cannot be retrieved
        """
        try:
            resource_data = dict(self.client.fetch_resource_owner(token))
        except Exception as exc:
            log.warning("cannot retrieve user details", exc_info=exc)
            raise ProtocolError("Failed to retrieve user details") from exc
        self._transition(FlowStep.RESOURCE_FETCHED)
        return resource_data
