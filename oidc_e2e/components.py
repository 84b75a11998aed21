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

"""Issuer, proxy, fake API server and audit webhook topologies."""

from __future__ import annotations

import re

import yaml

from oidc_e2e.config import E2ESettings
from oidc_e2e.constants import (
    AUDIT_WEBHOOK_CA_PREFIX,
    AUDIT_WEBHOOK_SERVER,
    AUDIT_WEBHOOK_VOLUME,
    CA_KEY,
    CLUSTERS_CONFIG_MOUNT,
    FAKE_APISERVER_CA_PREFIX,
    FAKE_APISERVER_VOLUME,
    HEALTH_PORT,
    IMPERSONATE_EXTRA,
    IMPERSONATE_GROUP,
    IMPERSONATE_USER,
    KIND_CLUSTER_ROLE,
    KIND_CLUSTER_ROLE_BINDING,
    KIND_KUBECONFIG_MOUNT,
    KUBECONFIG_SERVER_PATTERN,
    OIDC_CA_MOUNT,
    RBAC_CONFIG_MOUNT,
    READY_PATH,
    SECRET_CLUSTERS_CONFIG,
    SECRET_KIND_KUBECONFIG,
    SECRET_OIDC_CA,
    SECRET_RBAC_CONFIG,
    SECURE_PORT,
    TEST_USER,
    TLS_CERT_KEY,
    TLS_KEY_KEY,
    TLS_MOUNT_PATH,
    TOKEN_GROUPS_CLAIM,
    TOKEN_USERNAME_CLAIM,
)
from oidc_e2e.keys import KeyBundle
from oidc_e2e.models import AppDescriptor, ReadinessProbe, ServiceType, VolumeSpec
from oidc_e2e.resources import app_host, secret_manifest

RBAC_API_GROUP = "rbac.authorization.k8s.io"

_TLS_ARGS = (
    f"--secure-port={SECURE_PORT}",
    f"--tls-cert-file={TLS_MOUNT_PATH}/{TLS_CERT_KEY}",
    f"--tls-private-key-file={TLS_MOUNT_PATH}/{TLS_KEY_KEY}",
)


# ============================================================================
# Mock OIDC issuer
# ============================================================================

def issuer_url(settings: E2ESettings, namespace: str) -> str:
    """Issuer URL as advertised by the issuer and trusted by the proxy."""
    return f"https://{app_host(settings.issuer_image, namespace)}:{SECURE_PORT}"


def issuer_descriptor(settings: E2ESettings, namespace: str) -> AppDescriptor:
    """Cluster-internal mock OIDC issuer."""
    return AppDescriptor(
        name=settings.issuer_image,
        image=settings.issuer_image,
        args=("oidc-issuer", f"--issuer-url={issuer_url(settings, namespace)}") + _TLS_ARGS,
    )


# ============================================================================
# kube-oidc-proxy
# ============================================================================

def rewrite_kubeconfig(kubeconfig: str, control_plane_host: str) -> str:
    """Point a host-side kind kubeconfig at the in-cluster control-plane address."""
    return re.sub(KUBECONFIG_SERVER_PATTERN, f"server: https://{control_plane_host}:{SECURE_PORT}", kubeconfig)


def clusters_config(settings: E2ESettings) -> str:
    """Multi-cluster config naming the kind cluster the proxy fronts."""
    return yaml.safe_dump(
        {"clusters": [{
            "name": settings.proxy_cluster_name,
            "kubeconfig": f"{KIND_KUBECONFIG_MOUNT}/config",
        }]},
        sort_keys=False,
    )


def proxy_config_objects(settings: E2ESettings, kubeconfig: str, issuer_bundle: KeyBundle) -> list[dict]:
    """Config secrets the proxy mounts: upstream kubeconfig, clusters, RBAC and issuer CA.

    Args:
        settings: Session settings.
        kubeconfig: Host-side kubeconfig contents of the kind cluster.
        issuer_bundle: Key bundle of the deployed issuer; its certificate is the OIDC CA.
    """
    return [
        secret_manifest(
            {"config": rewrite_kubeconfig(kubeconfig, settings.control_plane_host)},
            name=SECRET_KIND_KUBECONFIG,
        ),
        secret_manifest({"clusters.yaml": clusters_config(settings)}, name=SECRET_CLUSTERS_CONFIG),
        secret_manifest({"rbac.yaml": ""}, name=SECRET_RBAC_CONFIG),
        secret_manifest({CA_KEY: issuer_bundle.cert_pem}, name=SECRET_OIDC_CA),
    ]


def proxy_access_names(settings: E2ESettings, namespace: str) -> tuple[str, str]:
    """Names of the proxy's cluster role and impersonation role for a session.

    Derived from the namespace so concurrent sessions never collide.
    """
    return f"{settings.proxy_image}-{namespace}", f"{settings.proxy_image}-impersonate-{namespace}"


def _cluster_role(name: str, rules: list[dict]) -> dict:
    return {
        "apiVersion": f"{RBAC_API_GROUP}/v1",
        "kind": KIND_CLUSTER_ROLE,
        "metadata": {"name": name},
        "rules": rules,
    }


def _cluster_role_binding(name: str, role: str, subjects: list[dict]) -> dict:
    return {
        "apiVersion": f"{RBAC_API_GROUP}/v1",
        "kind": KIND_CLUSTER_ROLE_BINDING,
        "metadata": {"name": name},
        "roleRef": {"apiGroup": RBAC_API_GROUP, "kind": KIND_CLUSTER_ROLE, "name": role},
        "subjects": subjects,
    }


def proxy_access_objects(settings: E2ESettings, namespace: str) -> list[dict]:
    """Cluster roles and bindings the proxy and the test identities need."""
    role_name, impersonate_name = proxy_access_names(settings, namespace)
    proxy_role = _cluster_role(role_name, [
        {"apiGroups": [""], "resources": ["users", "groups", "serviceaccounts"], "verbs": ["impersonate"]},
        {
            "apiGroups": ["authentication.k8s.io"],
            "resources": [
                "userextras/scopes",
                "tokenreviews",
                "userextras/originaluser.jetstack.io-user",
                "userextras/originaluser.jetstack.io-groups",
                "userextras/originaluser.jetstack.io-extra",
                "userextras/oktoimpersonateextra",
            ],
            "verbs": ["impersonate", "create"],
        },
        {"apiGroups": ["authorization.k8s.io"], "resources": ["subjectaccessreviews"], "verbs": ["create"]},
        {"apiGroups": ["*"], "resources": ["*"], "verbs": ["*"]},
    ])
    impersonate_role = _cluster_role(impersonate_name, [
        {"apiGroups": [""], "resources": ["users"], "resourceNames": [IMPERSONATE_USER],
         "verbs": ["impersonate"]},
        {"apiGroups": [""], "resources": ["groups"], "resourceNames": [IMPERSONATE_GROUP],
         "verbs": ["impersonate"]},
        {"apiGroups": ["authentication.k8s.io"], "resources": ["userextras/oktoimpersonateextra"],
         "resourceNames": [IMPERSONATE_EXTRA], "verbs": ["impersonate"]},
    ])
    return [
        proxy_role,
        impersonate_role,
        _cluster_role_binding(impersonate_name, impersonate_name, [
            {"kind": "User", "name": TEST_USER, "apiGroup": RBAC_API_GROUP},
        ]),
        _cluster_role_binding(role_name, role_name, [
            {"kind": "ServiceAccount", "name": settings.proxy_image, "namespace": namespace},
        ]),
    ]


def proxy_descriptor(
    settings: E2ESettings,
    oidc_issuer_url: str,
    extra_volumes: tuple[VolumeSpec, ...] = (),
    extra_args: tuple[str, ...] = (),
) -> AppDescriptor:
    """Externally reachable kube-oidc-proxy wired to the issuer and the kind cluster.

    Args:
        settings: Session settings.
        oidc_issuer_url: URL of the deployed issuer.
        extra_volumes: Additional secret volumes, mounted at ``/<name>``.
        extra_args: Additional proxy flags appended after the defaults.
    """
    base = AppDescriptor(
        name=settings.proxy_image,
        image=settings.proxy_image,
        command=("./proxy",),
        args=_TLS_ARGS + (
            f"--oidc-client-id={settings.client_id}",
            f"--oidc-issuer-url={oidc_issuer_url}",
            f"--oidc-username-claim={TOKEN_USERNAME_CLAIM}",
            f"--oidc-groups-claim={TOKEN_GROUPS_CLAIM}",
            f"--oidc-ca-file={OIDC_CA_MOUNT}/{CA_KEY}",
            "--v=10",
            f"--audit-webhook-server={AUDIT_WEBHOOK_SERVER}",
            f"--clusters-config={CLUSTERS_CONFIG_MOUNT}/clusters.yaml",
        ),
        volumes=(
            VolumeSpec(SECRET_KIND_KUBECONFIG, SECRET_KIND_KUBECONFIG, KIND_KUBECONFIG_MOUNT),
            VolumeSpec(SECRET_CLUSTERS_CONFIG, SECRET_CLUSTERS_CONFIG, CLUSTERS_CONFIG_MOUNT),
            VolumeSpec(SECRET_RBAC_CONFIG, SECRET_RBAC_CONFIG, RBAC_CONFIG_MOUNT),
            VolumeSpec("oidc", SECRET_OIDC_CA, OIDC_CA_MOUNT),
        ),
        ports=(SECURE_PORT, HEALTH_PORT),
        readiness=ReadinessProbe(path=READY_PATH, port=HEALTH_PORT),
        env=(("KUBECONFIG", f"{KIND_KUBECONFIG_MOUNT}/config"),),
        service_type=ServiceType.NODE_PORT,
    )
    return base.with_extra(volumes=tuple(extra_volumes), args=tuple(extra_args))


# ============================================================================
# Auxiliary test doubles
# ============================================================================

def fake_apiserver_descriptor(settings: E2ESettings) -> AppDescriptor:
    """Cluster-internal fake API server the proxy can be pointed at."""
    return AppDescriptor(
        name=settings.fake_apiserver_image,
        image=settings.fake_apiserver_image,
        args=("fake-apiserver",) + _TLS_ARGS,
    )


def audit_webhook_descriptor(settings: E2ESettings, log_path: str) -> AppDescriptor:
    """Cluster-internal audit webhook writing received events to *log_path*."""
    return AppDescriptor(
        name=settings.audit_webhook_image,
        image=settings.audit_webhook_image,
        args=("audit-webhook",) + _TLS_ARGS + (f"--audit-file-path={log_path}",),
    )


def ca_secret(prefix: str, bundle: KeyBundle) -> dict:
    """Secret publishing an app's certificate as ``ca.pem`` under a generated name."""
    return secret_manifest({CA_KEY: bundle.cert_pem}, generate_name=prefix)


def fake_apiserver_ca_secret(bundle: KeyBundle) -> dict:
    return ca_secret(FAKE_APISERVER_CA_PREFIX, bundle)


def audit_webhook_ca_secret(bundle: KeyBundle) -> dict:
    return ca_secret(AUDIT_WEBHOOK_CA_PREFIX, bundle)


def fake_apiserver_volume(secret_name: str) -> VolumeSpec:
    return VolumeSpec(FAKE_APISERVER_VOLUME, secret_name)


def audit_webhook_volume(secret_name: str) -> VolumeSpec:
    return VolumeSpec(AUDIT_WEBHOOK_VOLUME, secret_name)
