# Copyright © The OAuth2 Login Developers
# See the AUTHORS file at the top-level directory of this distribution
#
# This file is part of OAuth2 Login. It is subject to the license terms
# in the LICENSE file found in the top-level directory of this
# distribution. No part of OAuth2 Login, including this file, may be copied,
# modified, propagated, or distributed except according to the terms
# contained in the LICENSE file.

"""Errors raised while logging in via an external OAuth2 provider."""

from rest_framework import status


class OAuth2LoginError(Exception):
    """
    Base class for failures of the OAuth2 login.

    Once the OAuth2 login has claimed a request, every failure is definitive:
    it is reported to the user agent with ``status_code`` and never falls back
    to another authentication method.
    """

    status_code: int = status.HTTP_401_UNAUTHORIZED
    default_message: str = "OAuth2 authentication failed"

    def __init__(self, message: str | None = None) -> None:
        """Set the user-visible message, using the class default if missing."""
        self.message = message or self.default_message
        super().__init__(self.message)


class ProviderError(OAuth2LoginError):
    """The provider redirected back with an ``error`` parameter."""


class ProtocolError(OAuth2LoginError):
    """Talking to the provider failed: the upstream detail is not shown."""


class StateMismatchError(OAuth2LoginError):
    """The ``state`` parameter does not match the one stored in session."""

    default_message = "Invalid state in OAuth response"


class IdentityResolutionError(OAuth2LoginError):
    """The provider user details contain no usable identifier."""

    default_message = "User identifier not found or empty"


class UserNotFoundError(OAuth2LoginError):
    """No local account matches, and accounts are not created automatically."""

    default_message = "User not found"


class ProvisioningError(OAuth2LoginError):
    """A local account could not be created for the remote user."""

    default_message = "Failed to create new user"
