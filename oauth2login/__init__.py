# Copyright © The OAuth2 Login Developers
# See the AUTHORS file at the top-level directory of this distribution
#
# This file is part of OAuth2 Login. It is subject to the license terms
# in the LICENSE file found in the top-level directory of this
# distribution. No part of OAuth2 Login, including this file, may be copied,
# modified, propagated, or distributed except according to the terms
# contained in the LICENSE file.

"""Log in to Django with an external OAuth2 identity provider."""

# The authorization code flow lives in oauth2login.flow, and is driven by the
# login view in oauth2login.views. Local accounts are matched or created by
# oauth2login.provisioning, called from the authentication backend in
# oauth2login.auth.
