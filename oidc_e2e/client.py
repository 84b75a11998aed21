# /*
# Copyright 2026 The oidc-e2e Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Derived API client that talks to the deployed proxy with an issuer-signed token."""

from __future__ import annotations

import tempfile
import time
from pathlib import Path

import jwt
from kubernetes import client

from oidc_e2e.constants import TEST_USER, TOKEN_GROUPS, TOKEN_TTL_SECONDS
from oidc_e2e.keys import KeyBundle


def issue_token(
    issuer_bundle: KeyBundle,
    issuer_url: str,
    client_id: str,
    subject: str = TEST_USER,
    groups: tuple[str, ...] = TOKEN_GROUPS,
    ttl: int = TOKEN_TTL_SECONDS,
    now: int | None = None,
) -> str:
    """Sign an ID token with the mock issuer's key.

    Args:
        issuer_bundle: Key bundle of the deployed issuer.
        issuer_url: ``iss`` claim; must match the proxy's ``--oidc-issuer-url``.
        client_id: ``aud`` claim; must match the proxy's ``--oidc-client-id``.
        subject: Username, placed in ``sub`` and ``email``.
        groups: Group memberships.
        ttl: Token lifetime in seconds.
        now: Issue time as a Unix timestamp, defaults to the current time.

    Returns:
        RS256-signed compact JWT.
    """
    issued_at = int(time.time()) if now is None else now
    claims = {
        "iss": issuer_url,
        "aud": client_id,
        "sub": subject,
        "email": subject,
        "groups": list(groups),
        "iat": issued_at,
        "nbf": issued_at,
        "exp": issued_at + ttl,
    }
    return jwt.encode(claims, issuer_bundle.key_pem, algorithm="RS256")


def write_ca_file(bundle: KeyBundle) -> Path:
    """Write the bundle's certificate to a temporary PEM file the client can trust.

    The caller owns the file and removes it when the session closes.
    """
    tmp = tempfile.NamedTemporaryFile(delete=False, prefix="oidc-e2e-ca-", suffix=".pem")
    try:
        tmp.write(bundle.cert_pem)
        tmp.flush()
    finally:
        tmp.close()
    return Path(tmp.name)


def proxy_configuration(proxy_url: str, cluster_name: str, ca_file: Path, token: str) -> client.Configuration:
    """Client configuration for the cluster *cluster_name* served behind the proxy."""
    configuration = client.Configuration()
    configuration.host = f"{proxy_url.rstrip('/')}/{cluster_name}"
    configuration.ssl_ca_cert = str(ca_file)
    configuration.verify_ssl = True
    configuration.api_key = {"authorization": token}
    configuration.api_key_prefix = {"authorization": "Bearer"}
    return configuration


def new_proxy_client(
    proxy_url: str,
    cluster_name: str,
    ca_file: Path,
    issuer_bundle: KeyBundle,
    issuer_url: str,
    client_id: str,
) -> client.ApiClient:
    """Build an ``ApiClient`` authenticated to the proxy as the test user.

    Args:
        proxy_url: Deployed proxy endpoint.
        cluster_name: Cluster name the proxy serves under.
        ca_file: PEM file holding the proxy's certificate.
        issuer_bundle: Key bundle used to sign the ID token.
        issuer_url: Issuer URL placed in the token.
        client_id: OIDC client ID placed in the token.
    """
    token = issue_token(issuer_bundle, issuer_url, client_id)
    return client.ApiClient(configuration=proxy_configuration(proxy_url, cluster_name, ca_file, token))
