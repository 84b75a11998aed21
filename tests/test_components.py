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

from __future__ import annotations

import base64

import yaml

from oidc_e2e.components import (
    audit_webhook_descriptor,
    clusters_config,
    fake_apiserver_ca_secret,
    issuer_descriptor,
    issuer_url,
    proxy_access_names,
    proxy_access_objects,
    proxy_config_objects,
    proxy_descriptor,
    rewrite_kubeconfig,
)
from oidc_e2e.models import ServiceType, VolumeSpec


def _decode(secret: dict, key: str) -> str:
    return base64.b64decode(secret["data"][key]).decode()


def test_issuer_advertises_in_cluster_url(settings):
    descriptor = issuer_descriptor(settings, "ns-1")

    assert issuer_url(settings, "ns-1") == "https://oidc-issuer-e2e.ns-1.svc.cluster.local:6443"
    assert descriptor.args[:2] == ("oidc-issuer", f"--issuer-url={issuer_url(settings, 'ns-1')}")
    assert descriptor.service_type is ServiceType.CLUSTER_IP


def test_proxy_flags_wire_issuer_and_client_id(settings):
    descriptor = proxy_descriptor(settings, "https://issuer:6443")

    assert "--oidc-issuer-url=https://issuer:6443" in descriptor.args
    assert f"--oidc-client-id={settings.client_id}" in descriptor.args
    assert "--oidc-ca-file=/oidc/ca.pem" in descriptor.args
    assert descriptor.command == ("./proxy",)
    assert descriptor.externally_reachable


def test_proxy_extra_args_follow_defaults(settings):
    base = proxy_descriptor(settings, "https://issuer:6443")
    extended = proxy_descriptor(
        settings, "https://issuer:6443",
        extra_volumes=(VolumeSpec("audit-webhook-ca", "audit-webhook-ca-1"),),
        extra_args=("--token-passthrough",),
    )

    assert extended.args == base.args + ("--token-passthrough",)
    assert extended.volumes[-1].secret_name == "audit-webhook-ca-1"


def test_kubeconfig_points_at_control_plane(settings):
    rewritten = rewrite_kubeconfig(settings.kubeconfig_path.read_text(), settings.control_plane_host)

    assert "127.0.0.1" not in rewritten
    assert "server: https://kube-oidc-proxy-e2e-control-plane:6443" in rewritten


def test_config_secrets(settings, key_bundle):
    secrets = {s["metadata"]["name"]: s for s in proxy_config_objects(settings, "server: https://127.0.0.1:1\n", key_bundle)}

    assert set(secrets) == {"kind-kubeconfig", "clusters-config", "rbac-config", "oidc-ca"}
    assert _decode(secrets["oidc-ca"], "ca.pem").encode() == key_bundle.cert_pem
    assert _decode(secrets["rbac-config"], "rbac.yaml") == ""
    clusters = yaml.safe_load(_decode(secrets["clusters-config"], "clusters.yaml"))
    assert clusters == yaml.safe_load(clusters_config(settings))
    assert clusters["clusters"][0]["name"] == "kind-cluster"


def test_access_objects_are_session_scoped(settings):
    role, impersonate = proxy_access_names(settings, "ns-1")
    objects = proxy_access_objects(settings, "ns-1")
    bindings = {o["metadata"]["name"]: o for o in objects if o["kind"] == "ClusterRoleBinding"}

    assert role == "kube-oidc-proxy-e2e-ns-1"
    assert proxy_access_names(settings, "ns-2")[0] != role
    assert bindings[role]["roleRef"]["name"] == role
    assert bindings[role]["subjects"] == [
        {"kind": "ServiceAccount", "name": settings.proxy_image, "namespace": "ns-1"},
    ]
    assert bindings[impersonate]["subjects"][0]["name"] == "user@example.com"


def test_auxiliary_secrets_use_generated_names(key_bundle, settings):
    secret = fake_apiserver_ca_secret(key_bundle)
    descriptor = audit_webhook_descriptor(settings, "/audit/log")

    assert secret["metadata"] == {"generateName": "fake-apiserver-ca-"}
    assert "--audit-file-path=/audit/log" in descriptor.args
