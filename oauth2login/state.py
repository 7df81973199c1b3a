# Copyright © The OAuth2 Login Developers
# See the AUTHORS file at the top-level directory of this distribution
#
# This file is part of OAuth2 Login. It is subject to the license terms
# in the LICENSE file found in the top-level directory of this
# distribution. No part of OAuth2 Login, including this file, may be copied,
# modified, propagated, or distributed except according to the terms
# contained in the LICENSE file.

"""Storage for the CSRF state of a pending authorization round trip."""

from collections.abc import MutableMapping
from typing import Any, Protocol, runtime_checkable

SESSION_STATE_KEY = "oauth2login_state"


@runtime_checkable
class FlowStateStore(Protocol):
    """Single slot holding the state sent with the last authorize redirect."""

    def put(self, state: str) -> None:
        """Store ``state``, replacing any pending one."""

    def pop(self) -> str | None:
        """Remove and return the pending state, if any."""


class SessionFlowStateStore:
    """FlowStateStore kept in a Django session (or any mutable mapping)."""

    def __init__(
        self,
        session: MutableMapping[str, Any],
        key: str = SESSION_STATE_KEY,
    ) -> None:
        """Store state in ``session[key]``."""
        self.session = session
        self.key = key

    def put(self, state: str) -> None:
        """Store ``state``, replacing any pending one."""
        self.session[self.key] = state

    def pop(self) -> str | None:
        """
        Remove and return the pending state, if any.

        A stored value that is not a string is discarded as if missing.
        """
        value = self.session.pop(self.key, None)
        if not isinstance(value, str):
            return None
        return value
