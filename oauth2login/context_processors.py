# Copyright © The OAuth2 Login Developers
# See the AUTHORS file at the top-level directory of this distribution
#
# This file is part of OAuth2 Login. It is subject to the license terms
# in the LICENSE file found in the top-level directory of this
# distribution. No part of OAuth2 Login, including this file, may be copied,
# modified, propagated, or distributed except according to the terms
# contained in the LICENSE file.

"""Template context for offering the OAuth2 login method."""

from typing import Any
from urllib.parse import urlencode

from django.http import HttpRequest
from django.urls import reverse

from oauth2login.config import get_config


def login_methods(request: HttpRequest) -> dict[str, Any]:  # noqa: U100
    """Describe the OAuth2 login method for login method selectors."""
    config = get_config()
    query = urlencode({"authMethod": config.name})
    return {
        "oauth2_login_method": {
            "name": config.name,
            "label": config.label,
            "url": f"{reverse('oauth2login:login')}?{query}",
            "is_default": config.is_default,
        }
    }
