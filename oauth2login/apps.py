# Copyright © The OAuth2 Login Developers
# See the AUTHORS file at the top-level directory of this distribution
#
# This file is part of OAuth2 Login. It is subject to the license terms
# in the LICENSE file found in the top-level directory of this
# distribution. No part of OAuth2 Login, including this file, may be copied,
# modified, propagated, or distributed except according to the terms
# contained in the LICENSE file.

"""Django Application Configuration for the oauth2login application."""

from django.apps import AppConfig


class OAuth2LoginConfig(AppConfig):
    """Django's AppConfig for the oauth2login application."""

    name = "oauth2login"
    verbose_name = "OAuth2 Login"
    default_auto_field = "django.db.models.BigAutoField"

    def ready(self) -> None:
        """Finish initializing the oauth2login application."""
        # Import checks so that they are registered.
        import oauth2login.checks  # noqa: F401
