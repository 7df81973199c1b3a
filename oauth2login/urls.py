# Copyright © The OAuth2 Login Developers
# See the AUTHORS file at the top-level directory of this distribution
#
# This file is part of OAuth2 Login. It is subject to the license terms
# in the LICENSE file found in the top-level directory of this
# distribution. No part of OAuth2 Login, including this file, may be copied,
# modified, propagated, or distributed except according to the terms
# contained in the LICENSE file.

"""URLs for the oauth2login application."""

from django.urls import path

from oauth2login.views import OAuth2LoginView

app_name = "oauth2login"

urlpatterns = [
    path("login/", OAuth2LoginView.as_view(), name="login"),
]
