# Copyright © The OAuth2 Login Developers
# See the AUTHORS file at the top-level directory of this distribution
#
# This file is part of OAuth2 Login. It is subject to the license terms
# in the LICENSE file found in the top-level directory of this
# distribution. No part of OAuth2 Login, including this file, may be copied,
# modified, propagated, or distributed except according to the terms
# contained in the LICENSE file.

"""Resolve the identifier of a remote user from the provider user details."""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from oauth2login.config import IdentifierAttribute, ProviderConfig
from oauth2login.exceptions import IdentityResolutionError
from oauth2login.oauth2login_utils import get_attribute


@dataclass(frozen=True)
class ResolvedIdentity:
    """Identifier of a remote user, and the attribute it was taken from."""

    identifier: str
    attribute: IdentifierAttribute

    def __post_init__(self) -> None:
        """Reject empty identifiers."""
        if not self.identifier:
            raise ValueError("identifier cannot be empty")

    def __str__(self) -> str:
        """Return a description for logs."""
        return f"{self.attribute}:{self.identifier}"

    def to_session(self, backend: str) -> dict[str, str]:
        """
        Serialize for storage in a session.

        :param backend: dotted path of the authentication backend that
          produced this identity
        """
        return {
            "identifier": self.identifier,
            "attribute": str(self.attribute),
            "backend": backend,
        }


def resolve_identity(
    resource_data: Mapping[str, Any], config: ProviderConfig
) -> ResolvedIdentity:
    """
    Extract the identifier of the remote user from its details.

    The identifier is read from ``email_key`` if the configured identifier
    attribute is ``email``, and from ``username_key`` otherwise. The value is
    used verbatim.

    :raises IdentityResolutionError: if the value is missing or empty
    """
    identifier = get_attribute(resource_data, config.identifier_key)
    if identifier is None:
        raise IdentityResolutionError()
    return ResolvedIdentity(identifier, config.identifier_attribute)
