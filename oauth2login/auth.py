# Copyright © The OAuth2 Login Developers
# See the AUTHORS file at the top-level directory of this distribution
#
# This file is part of OAuth2 Login. It is subject to the license terms
# in the LICENSE file found in the top-level directory of this
# distribution. No part of OAuth2 Login, including this file, may be copied,
# modified, propagated, or distributed except according to the terms
# contained in the LICENSE file.

"""Authentication backend for users logged in via the OAuth2 provider."""

from collections.abc import Mapping
from typing import Any, TYPE_CHECKING

import django.http
from django.contrib.auth.backends import ModelBackend

from oauth2login.config import get_config
from oauth2login.identity import ResolvedIdentity
from oauth2login.provisioning import UserProvisioner

if TYPE_CHECKING:
    from django.contrib.auth.models import User

#: Dotted path of OAuth2AuthBackend, as stored in sessions
BACKEND_PATH = "oauth2login.auth.OAuth2AuthBackend"

#: Session key for the identity waiting to be confirmed by the backend
IDENTITY_SESSION_KEY = "oauth2login_identity"


class OAuth2AuthBackend(ModelBackend):
    """
    Auth backend for users authenticated by the OAuth2 provider.

    It only authenticates identities that the login view has just stored in
    the session as produced by this backend, and never checks passwords. Its
    path in the session marks users logged in via the OAuth2 provider.
    """

    def authenticate(  # type: ignore[override]
        self,
        request: django.http.HttpRequest | None,
        oauth2_identity: ResolvedIdentity | None = None,
        resource_data: Mapping[str, Any] | None = None,
        **kwargs: Any,  # noqa: U100
    ) -> "User | None":
        """
        Find or create the local user for a confirmed OAuth2 identity.

        :raises OAuth2LoginError: if no local user can be provisioned
        """
        if request is None or oauth2_identity is None:
            return None

        pending = request.session.pop(IDENTITY_SESSION_KEY, None)
        if pending != oauth2_identity.to_session(BACKEND_PATH):
            return None

        user = UserProvisioner(get_config()).provision(
            oauth2_identity, resource_data or {}
        )
        if not self.user_can_authenticate(user):
            return None
        return user
