# Copyright © The OAuth2 Login Developers
# See the AUTHORS file at the top-level directory of this distribution
#
# This file is part of OAuth2 Login. It is subject to the license terms
# in the LICENSE file found in the top-level directory of this
# distribution. No part of OAuth2 Login, including this file, may be copied,
# modified, propagated, or distributed except according to the terms
# contained in the LICENSE file.

"""OAuth2 login checks using Django checks framework."""

from collections.abc import Sequence
from typing import Any

from django.apps.config import AppConfig
from django.conf import settings
from django.core.checks import Error, register
from django.core.exceptions import ImproperlyConfigured

from oauth2login.auth import BACKEND_PATH
from oauth2login.config import SETTING_NAME, get_config


@register()
def provider_config_check(
    app_configs: Sequence[AppConfig] | None, **kwargs: Any  # noqa: U100
) -> list[Error]:
    """Check that the OAuth2 provider is correctly configured."""
    try:
        get_config()
    except ImproperlyConfigured as exc:
        return [
            Error(
                str(exc),
                hint=f"Set {SETTING_NAME} in django settings",
                id="oauth2login.E001",
            )
        ]
    return []


@register()
def auth_backend_check(
    app_configs: Sequence[AppConfig] | None, **kwargs: Any  # noqa: U100
) -> list[Error]:
    """Check that the OAuth2 authentication backend is enabled."""
    if BACKEND_PATH in settings.AUTHENTICATION_BACKENDS:
        return []
    return [
        Error(
            f"{BACKEND_PATH} is not in AUTHENTICATION_BACKENDS",
            hint=(
                f"Add {BACKEND_PATH!r} to AUTHENTICATION_BACKENDS, or OAuth2"
                " logins will never succeed"
            ),
            id="oauth2login.E002",
        )
    ]
