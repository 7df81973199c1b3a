# Copyright © The OAuth2 Login Developers
# See the AUTHORS file at the top-level directory of this distribution
#
# This file is part of OAuth2 Login. It is subject to the license terms
# in the LICENSE file found in the top-level directory of this
# distribution. No part of OAuth2 Login, including this file, may be copied,
# modified, propagated, or distributed except according to the terms
# contained in the LICENSE file.

"""
Map a remote identity to a local user, creating it if needed.

The local user is looked up by email or by username, according to the
configured identifier attribute. If no user matches and ``autocreate_users``
is set, a new one is created from the user details sent by the provider, and
set up with the configured default permissions and roles.
"""

import logging
from collections.abc import Mapping
from typing import Any, Protocol, TYPE_CHECKING

from django.contrib.auth import get_user_model
from django.contrib.auth.hashers import make_password
from django.contrib.auth.models import Group, Permission
from django.core.exceptions import (
    MultipleObjectsReturned,
    ObjectDoesNotExist,
    ValidationError,
)
from django.db import IntegrityError, transaction

from oauth2login.config import (
    IdentifierAttribute,
    PermissionSet,
    ProviderConfig,
)
from oauth2login.exceptions import ProvisioningError, UserNotFoundError
from oauth2login.identity import ResolvedIdentity
from oauth2login.models import OAuth2Account
from oauth2login.oauth2login_utils import get_attribute, split_full_name

if TYPE_CHECKING:
    from django.contrib.auth.models import User

log = logging.getLogger("oauth2login")


class UserStore(Protocol):
    """Durable storage of local users."""

    def find_by_username(self, username: str) -> "User | None":
        """Look up a user by username."""

    def find_by_email(self, email: str) -> "User | None":
        """Look up a user by email."""

    def create_user(
        self, *, username: str, email: str, display_name: str
    ) -> "User":
        """
        Create a user that can only log in via the OAuth2 provider.

        :raises ProvisioningError: if the user cannot be stored
        """

    def assign_global_permissions(
        self, user: "User", permissions: PermissionSet
    ) -> None:
        """Grant global permissions to a user."""

    def apply_role_template(self, user: "User", role: str) -> None:
        """Give a role to a user."""


class DjangoUserStore:
    """UserStore using the Django user model, permissions and groups."""

    def find_by_username(self, username: str) -> "User | None":
        """Look up a user by username."""
        User = get_user_model()
        return User.objects.filter(**{User.USERNAME_FIELD: username}).first()

    def find_by_email(self, email: str) -> "User | None":
        """Look up a user by email, preferring the oldest one."""
        return (
            get_user_model().objects.filter(email=email).order_by("pk").first()
        )

    def get_root_user(self) -> "User | None":
        """Return the account owning automatically created users."""
        return (
            get_user_model()
            .objects.filter(is_superuser=True)
            .order_by("pk")
            .first()
        )

    def create_user(
        self, *, username: str, email: str, display_name: str
    ) -> "User":
        """
        Create a user that can only log in via the OAuth2 provider.

        The password is random and unusable, so the user cannot log in with
        a local password.

        :raises ProvisioningError: if the user cannot be stored
        """
        User = get_user_model()
        first_name, last_name = split_full_name(display_name)
        user = User(
            email=email,
            first_name=first_name,
            last_name=last_name,
            **{User.USERNAME_FIELD: username},
        )
        user.password = make_password(None)

        # Django does not run validators on save, so validate explicitly
        # before storing anything
        try:
            with transaction.atomic():
                user.full_clean()
                user.save()
                OAuth2Account.objects.create(
                    user=user, parent=self.get_root_user()
                )
        except (ValidationError, IntegrityError) as exc:
            log.warning(
                "%s: cannot create a local user", username, exc_info=exc
            )
            raise ProvisioningError() from exc
        return user

    def assign_global_permissions(
        self, user: "User", permissions: PermissionSet
    ) -> None:
        """
        Grant global permissions to a user.

        ``permissions`` maps ``app_label.model`` resources to a dict of
        ``action: granted`` pairs. Each granted action is looked up as the
        ``app_label.action_model`` permission. Nothing is granted if any of
        the permissions does not exist.

        :raises ValueError: if a resource is not in ``app_label.model`` form
        :raises Permission.DoesNotExist: if a permission does not exist
        """
        granted: list[Permission] = []
        for resource, actions in permissions.items():
            app_label, sep, model = resource.partition(".")
            if not sep or not app_label or not model:
                raise ValueError(
                    f"invalid resource {resource!r}:"
                    " expected 'app_label.model'"
                )
            for action, allowed in actions.items():
                if not allowed:
                    continue
                codename = f"{action}_{model}"
                try:
                    granted.append(
                        Permission.objects.get(
                            content_type__app_label=app_label,
                            content_type__model=model,
                            codename=codename,
                        )
                    )
                except Permission.DoesNotExist:
                    raise Permission.DoesNotExist(
                        f"permission {app_label}.{codename} not found"
                    )
        user.user_permissions.add(*granted)

    def apply_role_template(self, user: "User", role: str) -> None:
        """
        Add a user to the group named ``role``.

        :raises Group.DoesNotExist: if the group does not exist
        """
        try:
            group = Group.objects.get(name=role)
        except Group.DoesNotExist:
            raise Group.DoesNotExist(f"group {role!r} not found")
        user.groups.add(group)


class UserProvisioner:
    """Find or create the local user for a remote identity."""

    def __init__(
        self, config: ProviderConfig, store: UserStore | None = None
    ) -> None:
        """
        Set up provisioning.

        :param config: provider configuration
        :param store: user storage, defaults to a DjangoUserStore
        """
        self.config = config
        self.store: UserStore = store or DjangoUserStore()

    def lookup_user(self, identity: ResolvedIdentity) -> "User | None":
        """Look up the local user matching an identity."""
        if identity.attribute == IdentifierAttribute.EMAIL:
            return self.store.find_by_email(identity.identifier)
        return self.store.find_by_username(identity.identifier)

    def provision(
        self, identity: ResolvedIdentity, resource_data: Mapping[str, Any]
    ) -> "User":
        """
        Return the local user for an identity, creating it if allowed.

        :param identity: identity resolved from the user details
        :param resource_data: user details sent by the provider
        :raises UserNotFoundError: if there is no user and it cannot be
          created automatically
        :raises ProvisioningError: if creating the user failed
        """
        if (user := self.lookup_user(identity)) is not None:
            log.info("%s: user matched to identity %s", user, identity)
            return user

        if not self.config.autocreate_users:
            log.warning("%s: no local user found", identity)
            raise UserNotFoundError()

        user = self.create_user(resource_data)
        log.info("%s: auto created from identity %s", user, identity)
        self.setup_new_user(user)
        return user

    def create_user(self, resource_data: Mapping[str, Any]) -> "User":
        """
        Create a local user from the provider user details.

        :raises ProvisioningError: if required details are missing, or the
          user could not be stored
        """
        values = {
            key: get_attribute(resource_data, key)
            for key in (
                self.config.username_key,
                self.config.display_name_key,
                self.config.email_key,
            )
        }
        if missing := [key for key, value in values.items() if value is None]:
            message = (
                "Missing required attributes in user details: "
                + ", ".join(missing)
            )
            log.warning("cannot create a local user: %s", message)
            raise ProvisioningError(message)

        username = values[self.config.username_key]
        display_name = values[self.config.display_name_key]
        email = values[self.config.email_key]
        assert username is not None
        assert display_name is not None
        assert email is not None
        return self.store.create_user(
            username=username, email=email, display_name=display_name
        )

    def setup_new_user(self, user: "User") -> None:
        """
        Give a newly created user its default permissions and roles.

        Permissions are assigned first, then roles in the configured order.
        Failures are logged and otherwise ignored: the user stays created.
        """
        if permissions := self.config.autocreate_permissions:
            try:
                self.store.assign_global_permissions(user, permissions)
            except (
                ObjectDoesNotExist, MultipleObjectsReturned, ValueError
            ) as exc:
                log.warning(
                    "%s: cannot assign default permissions: %s", user, exc
                )

        for role in self.config.autocreate_roles:
            try:
                self.store.apply_role_template(user, role)
            except (ObjectDoesNotExist, MultipleObjectsReturned) as exc:
                log.warning("%s: cannot apply role %r: %s", user, role, exc)
