# Copyright © The OAuth2 Login Developers
# See the AUTHORS file at the top-level directory of this distribution
#
# This file is part of OAuth2 Login. It is subject to the license terms
# in the LICENSE file found in the top-level directory of this
# distribution. No part of OAuth2 Login, including this file, may be copied,
# modified, propagated, or distributed except according to the terms
# contained in the LICENSE file.

"""Test the OAuth2 login views."""

from typing import Any
from urllib.parse import parse_qs, urlparse

import responses
from django.conf import settings
from django.contrib.auth import BACKEND_SESSION_KEY, get_user_model
from django.http import HttpResponseBase
from django.test import SimpleTestCase, TestCase, override_settings
from django.urls import reverse
from django.views.generic import View
from rest_framework import status

from oauth2login.auth import BACKEND_PATH, IDENTITY_SESSION_KEY
from oauth2login.state import SESSION_STATE_KEY
from oauth2login.views import (
    NEXT_URL_SESSION_KEY,
    OAuth2LoginMixin,
    OAuth2LoginView,
)

TOKEN_URL = "https://sso.example.org/oauth/token"
USERINFO_URL = "https://sso.example.org/oauth/userinfo"

RESOURCE_DATA = {
    "preferred_username": "alice",
    "email": "alice@x.com",
    "name": "Alice A",
}


class OAuth2LoginViewTests(TestCase):
    """Test OAuth2LoginView."""

    def setUp(self) -> None:
        super().setUp()
        self.url = reverse("oauth2login:login")
        self.User = get_user_model()

    def start_login(self, **params: str) -> str:
        """Start an OAuth2 login, returning the state sent to the provider."""
        response = self.client.get(
            self.url, {"authMethod": "oauth2", **params}
        )
        self.assertEqual(response.status_code, status.HTTP_302_FOUND)
        location = urlparse(response["Location"])
        self.assertEqual(
            f"{location.scheme}://{location.netloc}{location.path}",
            "https://sso.example.org/oauth/authorize",
        )
        query = parse_qs(location.query)
        self.assertEqual(
            query["redirect_uri"], ["http://testserver/accounts/login/"]
        )
        [state] = query["state"]
        self.assertEqual(self.client.session[SESSION_STATE_KEY], state)
        return state

    def mock_provider(
        self, resource_data: dict[str, Any] | None = None
    ) -> None:
        """Mock the token and user details endpoints."""
        responses.add(
            responses.POST,
            TOKEN_URL,
            json={"access_token": "accesstoken", "token_type": "Bearer"},
        )
        responses.add(
            responses.GET,
            USERINFO_URL,
            json=RESOURCE_DATA if resource_data is None else resource_data,
        )

    def callback(self, state: str, code: str = "testcode") -> HttpResponseBase:
        """Simulate the provider sending the user back to the login view."""
        return self.client.get(self.url, {"code": code, "state": state})

    def assertLoggedIn(self, username: str) -> None:
        """Check that the test client session is logged in as username."""
        user = self.User.objects.get(username=username)
        session = self.client.session
        self.assertEqual(session["_auth_user_id"], str(user.pk))
        self.assertEqual(session[BACKEND_SESSION_KEY], BACKEND_PATH)
        self.assertNotIn(IDENTITY_SESSION_KEY, session)

    def assertNotLoggedIn(self) -> None:
        """Check that the test client session is not logged in."""
        self.assertNotIn("_auth_user_id", self.client.session)

    def assertRejected(self, response: HttpResponseBase, message: str) -> None:
        """Check that the login was rejected with the given message."""
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(
            response["Content-Type"], "text/plain; charset=utf-8"
        )
        self.assertEqual(response.content.decode(), message)
        self.assertNotLoggedIn()

    def test_login_form(self) -> None:
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertContains(
            response,
            f'<a href="{self.url}?authMethod=oauth2">Example SSO</a>',
            html=True,
        )
        self.assertNotIn(SESSION_STATE_KEY, self.client.session)

    def test_login_form_other_method(self) -> None:
        response = self.client.get(self.url, {"authMethod": "password"})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertNotIn(SESSION_STATE_KEY, self.client.session)

    def test_password_login(self) -> None:
        self.User.objects.create_user("bob", password="secret")
        response = self.client.post(
            self.url, {"username": "bob", "password": "secret"}
        )
        self.assertRedirects(
            response,
            settings.LOGIN_REDIRECT_URL,
            fetch_redirect_response=False,
        )
        self.assertEqual(
            self.client.session[BACKEND_SESSION_KEY],
            "django.contrib.auth.backends.ModelBackend",
        )

    def test_never_cache(self) -> None:
        response = self.client.get(self.url, {"authMethod": "oauth2"})
        self.assertIn("no-cache", response["Cache-Control"])

    @responses.activate
    def test_login(self) -> None:
        self.User.objects.create_user("alice")
        self.mock_provider()
        state = self.start_login()

        with self.assertLogs("oauth2login") as log:
            response = self.callback(state)

        self.assertRedirects(
            response,
            settings.LOGIN_REDIRECT_URL,
            fetch_redirect_response=False,
        )
        self.assertLoggedIn("alice")
        self.assertNotIn(SESSION_STATE_KEY, self.client.session)
        self.assertIn(
            "INFO:oauth2login:"
            "username:alice: authenticated by the OAuth2 provider",
            log.output,
        )

        token_request = responses.calls[0].request
        assert isinstance(token_request.body, str)
        self.assertEqual(parse_qs(token_request.body)["code"], ["testcode"])
        self.assertEqual(
            responses.calls[1].request.headers["Authorization"],
            "Bearer accesstoken",
        )

    @responses.activate
    def test_login_post_callback(self) -> None:
        self.User.objects.create_user("alice")
        self.mock_provider()
        state = self.start_login()

        with self.assertLogs("oauth2login"):
            response = self.client.post(
                self.url, {"code": "testcode", "state": state}
            )

        self.assertEqual(response.status_code, status.HTTP_302_FOUND)
        self.assertLoggedIn("alice")

    @override_settings(
        OAUTH2_LOGIN={**settings.OAUTH2_LOGIN, "is_default": True}
    )
    def test_default_method(self) -> None:
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_302_FOUND)
        self.assertTrue(
            response["Location"].startswith(
                "https://sso.example.org/oauth/authorize?"
            )
        )

    @override_settings(
        OAUTH2_LOGIN={**settings.OAUTH2_LOGIN, "is_default": True}
    )
    def test_default_method_other_selected(self) -> None:
        response = self.client.get(self.url, {"authMethod": "password"})
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    @override_settings(
        OAUTH2_LOGIN={
            **settings.OAUTH2_LOGIN,
            "redirect_uri": "https://app.example.org/login/",
        }
    )
    def test_configured_redirect_uri(self) -> None:
        response = self.client.get(self.url, {"authMethod": "oauth2"})
        query = parse_qs(urlparse(response["Location"]).query)
        self.assertEqual(
            query["redirect_uri"], ["https://app.example.org/login/"]
        )

    @override_settings(LOGIN_REDIRECT_URL="/home/")
    @responses.activate
    def test_login_default_redirect(self) -> None:
        self.User.objects.create_user("alice")
        self.mock_provider()
        state = self.start_login()
        self.assertNotIn(NEXT_URL_SESSION_KEY, self.client.session)

        with self.assertLogs("oauth2login"):
            response = self.callback(state)

        self.assertRedirects(
            response, "/home/", fetch_redirect_response=False
        )
        self.assertLoggedIn("alice")

    @responses.activate
    def test_next_url_not_carried_over(self) -> None:
        self.User.objects.create_user("alice")
        self.mock_provider()
        self.start_login(next="/some/page/")
        state = self.start_login()
        self.assertNotIn(NEXT_URL_SESSION_KEY, self.client.session)

        with self.assertLogs("oauth2login"):
            response = self.callback(state)

        self.assertRedirects(
            response,
            settings.LOGIN_REDIRECT_URL,
            fetch_redirect_response=False,
        )

    @responses.activate
    def test_next_url(self) -> None:
        self.User.objects.create_user("alice")
        self.mock_provider()
        state = self.start_login(next="/some/page/")
        self.assertEqual(
            self.client.session[NEXT_URL_SESSION_KEY], "/some/page/"
        )

        with self.assertLogs("oauth2login"):
            response = self.callback(state)

        self.assertRedirects(
            response, "/some/page/", fetch_redirect_response=False
        )
        self.assertNotIn(NEXT_URL_SESSION_KEY, self.client.session)

    @responses.activate
    def test_next_url_unsafe(self) -> None:
        self.User.objects.create_user("alice")
        self.mock_provider()
        state = self.start_login(next="https://evil.example.com/")
        self.assertNotIn(NEXT_URL_SESSION_KEY, self.client.session)

        with self.assertLogs("oauth2login"):
            response = self.callback(state)

        self.assertRedirects(
            response,
            settings.LOGIN_REDIRECT_URL,
            fetch_redirect_response=False,
        )

    @responses.activate
    def test_invalid_state(self) -> None:
        self.User.objects.create_user("alice")
        self.mock_provider()
        self.start_login()

        with self.assertLogs("oauth2login", level="WARNING"):
            response = self.callback("forged")

        self.assertRejected(response, "Invalid state in OAuth response")
        self.assertNotIn(SESSION_STATE_KEY, self.client.session)
        self.assertEqual(len(responses.calls), 0)

    @responses.activate
    def test_callback_without_login(self) -> None:
        self.mock_provider()
        with self.assertLogs("oauth2login", level="WARNING"):
            response = self.callback("teststate")
        self.assertRejected(response, "Invalid state in OAuth response")

    @responses.activate
    def test_state_replay(self) -> None:
        self.User.objects.create_user("alice")
        self.mock_provider()
        state = self.start_login()
        with self.assertLogs("oauth2login"):
            self.callback(state)
        self.client.logout()

        with self.assertLogs("oauth2login", level="WARNING"):
            response = self.callback(state)

        self.assertRejected(response, "Invalid state in OAuth response")

    def test_provider_error(self) -> None:
        self.start_login()
        with self.assertLogs("oauth2login", level="WARNING"):
            response = self.client.get(
                self.url,
                {
                    "error": "access_denied",
                    "error_description": "The user denied access",
                },
            )
        self.assertRejected(response, "The user denied access")

    @responses.activate
    def test_token_error(self) -> None:
        responses.add(
            responses.POST,
            TOKEN_URL,
            json={"error": "invalid_grant"},
            status=400,
        )
        state = self.start_login()

        with self.assertLogs("oauth2login", level="WARNING"):
            response = self.callback(state)

        self.assertRejected(response, "Failed to retrieve access token")

    @responses.activate
    def test_resource_owner_error(self) -> None:
        responses.add(
            responses.POST,
            TOKEN_URL,
            json={"access_token": "accesstoken", "token_type": "Bearer"},
        )
        responses.add(responses.GET, USERINFO_URL, status=500)
        state = self.start_login()

        with self.assertLogs("oauth2login", level="WARNING"):
            response = self.callback(state)

        self.assertRejected(response, "Failed to retrieve user details")

    @responses.activate
    def test_identifier_missing(self) -> None:
        self.mock_provider({"email": "alice@x.com"})
        state = self.start_login()

        with self.assertLogs("oauth2login", level="WARNING"):
            response = self.callback(state)

        self.assertRejected(response, "User identifier not found or empty")

    @responses.activate
    def test_user_not_found(self) -> None:
        self.mock_provider()
        state = self.start_login()

        with self.assertLogs("oauth2login", level="WARNING") as log:
            response = self.callback(state)

        self.assertRejected(response, "User not found")
        self.assertIn(
            "WARNING:oauth2login:username:alice: no local user found",
            log.output,
        )
        self.assertFalse(self.User.objects.exists())
        self.assertNotIn(IDENTITY_SESSION_KEY, self.client.session)

    @responses.activate
    def test_inactive_user(self) -> None:
        self.User.objects.create_user("alice", is_active=False)
        self.mock_provider()
        state = self.start_login()

        with self.assertLogs("oauth2login", level="WARNING") as log:
            response = self.callback(state)

        self.assertRejected(response, "User not found")
        self.assertIn(
            f"WARNING:oauth2login:username:alice: not authenticated by"
            f" {BACKEND_PATH}",
            log.output,
        )

    @override_settings(
        OAUTH2_LOGIN={**settings.OAUTH2_LOGIN, "autocreate_users": True}
    )
    @responses.activate
    def test_autocreate(self) -> None:
        root = self.User.objects.create_superuser("root")
        self.mock_provider()
        state = self.start_login()

        with self.assertLogs("oauth2login"):
            response = self.callback(state)

        self.assertEqual(response.status_code, status.HTTP_302_FOUND)
        self.assertLoggedIn("alice")
        user = self.User.objects.get(username="alice")
        self.assertEqual(user.email, "alice@x.com")
        self.assertEqual(user.first_name, "Alice")
        self.assertEqual(user.last_name, "A")
        self.assertFalse(user.has_usable_password())
        self.assertEqual(user.oauth2_account.parent, root)

    @override_settings(
        OAUTH2_LOGIN={**settings.OAUTH2_LOGIN, "autocreate_users": True}
    )
    @responses.activate
    def test_autocreate_missing_attributes(self) -> None:
        self.mock_provider({"preferred_username": "alice"})
        state = self.start_login()

        with self.assertLogs("oauth2login", level="WARNING"):
            response = self.callback(state)

        self.assertRejected(
            response,
            "Missing required attributes in user details: name, email",
        )
        self.assertFalse(self.User.objects.exists())

    @override_settings(
        AUTHENTICATION_BACKENDS=["django.contrib.auth.backends.ModelBackend"]
    )
    @responses.activate
    def test_backend_not_enabled(self) -> None:
        self.User.objects.create_user("alice")
        self.mock_provider()
        state = self.start_login()

        with self.assertLogs("oauth2login", level="WARNING"):
            response = self.callback(state)

        self.assertRejected(response, "User not found")


class OAuth2RedirectUrlTests(SimpleTestCase):
    """Test OAuth2LoginMixin.get_oauth2_redirect_url."""

    @override_settings(LOGIN_REDIRECT_URL="/home/")
    def test_login_view(self) -> None:
        self.assertEqual(OAuth2LoginView().get_oauth2_redirect_url(), "/home/")

    def test_login_view_next_page(self) -> None:
        view = OAuth2LoginView(next_page="/welcome/")
        self.assertEqual(view.get_oauth2_redirect_url(), "/welcome/")

    @override_settings(LOGIN_REDIRECT_URL="/home/")
    def test_other_view(self) -> None:
        class PlainLoginView(OAuth2LoginMixin, View):
            pass

        self.assertEqual(PlainLoginView().get_oauth2_redirect_url(), "/home/")
