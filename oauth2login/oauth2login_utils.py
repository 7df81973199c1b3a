# Copyright © The OAuth2 Login Developers
# See the AUTHORS file at the top-level directory of this distribution
#
# This file is part of OAuth2 Login. It is subject to the license terms
# in the LICENSE file found in the top-level directory of this
# distribution. No part of OAuth2 Login, including this file, may be copied,
# modified, propagated, or distributed except according to the terms
# contained in the LICENSE file.

"""Helper functions for the oauth2login module."""

from collections.abc import Mapping
from typing import Any


def split_full_name(name: str) -> tuple[str, str]:
    """
    Arbitrary split a full name into (first_name, last_name).

    This is better than nothing, but not a lot better than that.
    """
    # See http://www.kalzumeus.com/2010/06/17/falsehoods-programmers-believe-about-names/  # noqa
    fn = name.split()
    if not fn:
        return "", ""
    elif len(fn) == 1:
        return fn[0], ""
    elif len(fn) == 2:
        return fn[0], fn[1]
    elif len(fn) == 3:
        return " ".join(fn[0:2]), fn[2]
    else:
        middle = len(fn) // 2
        return " ".join(fn[:middle]), " ".join(fn[middle:])


def split_scopes(scopes: Any) -> list[str]:
    """
    Turn a comma-separated scope list into a list of scope names.

    :raises ValueError: if scopes is not a string or a list of strings
    """
    if isinstance(scopes, str):
        scopes = scopes.split(",")
    elif not isinstance(scopes, (list, tuple)):
        raise ValueError(
            "scopes must be a comma-separated string or a list of strings"
        )
    result: list[str] = []
    for scope in scopes:
        if not isinstance(scope, str):
            raise ValueError(f"invalid scope {scope!r}: not a string")
        if scope := scope.strip():
            result.append(scope)
    return result


def get_attribute(data: Mapping[str, Any], key: str) -> str | None:
    """
    Look up a non-empty attribute in provider user details.

    Strings are returned exactly as the provider sent them, and integers
    (such as numeric user ids) are converted to strings. Empty strings,
    zero, booleans and any other type count as missing.
    """
    match data.get(key):
        case bool():
            return None
        case int() as value if value:
            return str(value)
        case str() as value if value:
            return value
        case _:
            return None
