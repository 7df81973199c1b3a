# Copyright © The OAuth2 Login Developers
# See the AUTHORS file at the top-level directory of this distribution
#
# This file is part of OAuth2 Login. It is subject to the license terms
# in the LICENSE file found in the top-level directory of this
# distribution. No part of OAuth2 Login, including this file, may be copied,
# modified, propagated, or distributed except according to the terms
# contained in the LICENSE file.

"""
Views to log in via the external OAuth2 provider.

The login hook is implemented as a mixin for the normal
django.contrib.auth.LoginView: the OAuth2 flow runs first, and if it does not
handle the request, the normal login form is used.
"""

import logging
from collections.abc import Mapping
from typing import Any

from django.conf import settings
from django.contrib import auth
from django.contrib.auth.views import LoginView
from django.http import HttpRequest, HttpResponse, HttpResponseBase
from django.shortcuts import redirect, resolve_url
from django.utils.decorators import method_decorator
from django.utils.http import url_has_allowed_host_and_scheme
from django.views.decorators.cache import never_cache
from django.views.generic import View

from oauth2login.auth import BACKEND_PATH, IDENTITY_SESSION_KEY
from oauth2login.config import ProviderConfig, get_config
from oauth2login.exceptions import OAuth2LoginError, UserNotFoundError
from oauth2login.flow import AuthorizationFlow, FlowRedirect, FlowSuccess
from oauth2login.identity import ResolvedIdentity
from oauth2login.providers import GenericProviderClient, ProviderClient
from oauth2login.state import SessionFlowStateStore

log = logging.getLogger("oauth2login")

#: Session key for the URL to go to after a successful login
NEXT_URL_SESSION_KEY = "oauth2login_next_url"


class OAuth2LoginMixin:
    """Mixin to log in via the OAuth2 provider in a login view."""

    request: HttpRequest

    @method_decorator(never_cache)
    def dispatch(
        self, request: HttpRequest, *args: Any, **kwargs: Any
    ) -> HttpResponseBase:
        """Run the OAuth2 flow, falling back to the wrapped view."""
        try:
            response = self.oauth2_login(request)
        except OAuth2LoginError as exc:
            return HttpResponse(
                exc.message,
                status=exc.status_code,
                content_type="text/plain; charset=utf-8",
            )
        if response is not None:
            return response
        assert isinstance(self, View)
        return super().dispatch(request, *args, **kwargs)

    def get_redirect_uri(self, config: ProviderConfig) -> str:
        """Return the URL the provider sends the user back to."""
        if config.redirect_uri:
            return config.redirect_uri
        return self.request.build_absolute_uri(self.request.path)

    def get_provider_client(self, config: ProviderConfig) -> ProviderClient:
        """Return the client for the provider endpoints."""
        return GenericProviderClient(
            config, redirect_uri=self.get_redirect_uri(config)
        )

    def get_oauth2_params(self, request: HttpRequest) -> Mapping[str, str]:
        """Return the request parameters for the OAuth2 flow."""
        if request.method == "POST":
            return request.POST
        return request.GET

    def oauth2_login(self, request: HttpRequest) -> HttpResponseBase | None:
        """
        Run a step of the OAuth2 flow.

        :return: the response to send, or None if the request is left to
          the wrapped view
        :raises OAuth2LoginError: if the login failed
        """
        config = get_config()
        params = self.get_oauth2_params(request)
        flow = AuthorizationFlow(
            config,
            self.get_provider_client(config),
            SessionFlowStateStore(request.session),
        )
        match flow.run(params):
            case None:
                return None
            case FlowRedirect(url=url):
                self.store_next_url(request, params.get("next"))
                return redirect(url)
            case FlowSuccess(identity=identity, resource_data=resource_data):
                return self.oauth2_complete(request, identity, resource_data)
            case unexpected:  # pragma: no cover
                raise AssertionError(f"unexpected flow result {unexpected!r}")

    def store_next_url(
        self, request: HttpRequest, next_url: str | None
    ) -> None:
        """Remember where to go after the login, if it is a safe URL."""
        if next_url and url_has_allowed_host_and_scheme(
            next_url,
            allowed_hosts={request.get_host()},
            require_https=request.is_secure(),
        ):
            request.session[NEXT_URL_SESSION_KEY] = next_url
        else:
            request.session.pop(NEXT_URL_SESSION_KEY, None)

    def oauth2_complete(
        self,
        request: HttpRequest,
        identity: ResolvedIdentity,
        resource_data: dict[str, Any],
    ) -> HttpResponseBase:
        """
        Log in the local user for an identity authenticated by the provider.

        The identity is stored in the session as produced by the OAuth2
        backend, and only that backend can turn it into a user.
        """
        request.session[IDENTITY_SESSION_KEY] = identity.to_session(
            BACKEND_PATH
        )
        user = auth.authenticate(
            request, oauth2_identity=identity, resource_data=resource_data
        )
        if user is None or getattr(user, "backend", None) != BACKEND_PATH:
            request.session.pop(IDENTITY_SESSION_KEY, None)
            log.warning("%s: not authenticated by %s", identity, BACKEND_PATH)
            raise UserNotFoundError()

        next_url = request.session.pop(NEXT_URL_SESSION_KEY, None)
        auth.login(request, user)
        log.debug("logged in user %s", user)
        return redirect(next_url or self.get_oauth2_redirect_url())

    def get_oauth2_redirect_url(self) -> str:
        """Return the URL to go to after a login without a next URL."""
        if isinstance(self, LoginView):
            return self.get_default_redirect_url()
        return resolve_url(settings.LOGIN_REDIRECT_URL)


class OAuth2LoginView(OAuth2LoginMixin, LoginView):
    """Login view trying the OAuth2 provider before the login form."""
