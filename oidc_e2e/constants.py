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

"""Constants shared by the builders, the session and the CLI."""

from __future__ import annotations

# -- Labels & ownership --
LABEL_APP = "app"
LABEL_SESSION = "oidc-e2e.io/session"
OWNER_API_VERSION = "v1"
OWNER_KIND_NAMESPACE = "Namespace"

# -- Object kinds --
KIND_SECRET = "Secret"
KIND_SERVICE_ACCOUNT = "ServiceAccount"
KIND_CLUSTER_ROLE = "ClusterRole"
KIND_CLUSTER_ROLE_BINDING = "ClusterRoleBinding"
KIND_SERVICE = "Service"
KIND_DEPLOYMENT = "Deployment"
KIND_CRD = "CustomResourceDefinition"

# -- Submission ranks (lowest first) --
RANK_SECRET = 0
RANK_IDENTITY = 1
RANK_ACCESS = 2
RANK_SERVICE = 3
RANK_WORKLOAD = 4

KIND_RANKS = {
    KIND_SECRET: RANK_SECRET,
    KIND_SERVICE_ACCOUNT: RANK_IDENTITY,
    KIND_CLUSTER_ROLE: RANK_ACCESS,
    KIND_CLUSTER_ROLE_BINDING: RANK_ACCESS,
    KIND_SERVICE: RANK_SERVICE,
    KIND_DEPLOYMENT: RANK_WORKLOAD,
}

# -- Conditions --
CONDITION_ESTABLISHED = "Established"
CONDITION_TRUE = "True"

# -- Networking --
SECURE_PORT = 6443
HEALTH_PORT = 8080
READY_PATH = "/ready"
CLUSTER_DOMAIN = "svc.cluster.local"
NODE_INTERNAL_IP = "InternalIP"

# -- TLS material layout --
TLS_VOLUME = "tls"
TLS_MOUNT_PATH = "/tls"
TLS_CERT_KEY = "cert.pem"
TLS_KEY_KEY = "key.pem"
CA_KEY = "ca.pem"
KEY_BUNDLE_VALIDITY_DAYS = 365
KEY_BUNDLE_RSA_BITS = 2048

# -- Proxy config secrets --
SECRET_KIND_KUBECONFIG = "kind-kubeconfig"
SECRET_CLUSTERS_CONFIG = "clusters-config"
SECRET_RBAC_CONFIG = "rbac-config"
SECRET_OIDC_CA = "oidc-ca"
KIND_KUBECONFIG_MOUNT = "/etc/kind-kubeconfig"
CLUSTERS_CONFIG_MOUNT = "/etc/clusters-config"
RBAC_CONFIG_MOUNT = "/etc/rbac-config"
OIDC_CA_MOUNT = "/oidc"
AUDIT_WEBHOOK_SERVER = "https://127.0.0.1:8989"
KUBECONFIG_SERVER_PATTERN = r"server: https://127\.0\.0\.1:\d+"

# -- Test identities --
TEST_USER = "user@example.com"
IMPERSONATE_USER = "ok-to-impersonate@nodomain.dev"
IMPERSONATE_GROUP = "ok-to-impersonate-group"
IMPERSONATE_EXTRA = "foo"
TOKEN_USERNAME_CLAIM = "email"
TOKEN_GROUPS_CLAIM = "groups"
TOKEN_GROUPS = ("group-1", "group-2")
TOKEN_TTL_SECONDS = 600

# -- Auxiliary apps --
FAKE_APISERVER_CA_PREFIX = "fake-apiserver-ca-"
FAKE_APISERVER_VOLUME = "fake-apiserver"
AUDIT_WEBHOOK_CA_PREFIX = "audit-webhook-ca-"
AUDIT_WEBHOOK_VOLUME = "audit-webhook-ca"

# -- Settings defaults --
DEFAULT_KUBECONFIG = "~/.kube/config"
DEFAULT_KIND_CLUSTER_NAME = "kube-oidc-proxy-e2e"
DEFAULT_PROXY_CLUSTER_NAME = "kind-cluster"
DEFAULT_CLIENT_ID = "kube-oidc-proxy_e2e_client-id"
DEFAULT_PROXY_IMAGE = "kube-oidc-proxy-e2e"
DEFAULT_ISSUER_IMAGE = "oidc-issuer-e2e"
DEFAULT_FAKE_APISERVER_IMAGE = "fake-apiserver-e2e"
DEFAULT_AUDIT_WEBHOOK_IMAGE = "audit-webhook-e2e"
DEFAULT_BASE_NAME = "kube-oidc-proxy-e2e"
DEFAULT_POLL_INTERVAL_SECONDS = 1.0
DEFAULT_READY_TIMEOUT_SECONDS = 20.0
DEFAULT_CRD_TIMEOUT_SECONDS = 30.0
DEFAULT_DELETE_TIMEOUT_SECONDS = 30.0
DEFAULT_SETTLE_DELAY_SECONDS = 2.0
DEFAULT_CRD_FILES = (
    "deploy/crds/rbac.platformengineers.io_capiclusterrolebindings.yaml",
    "deploy/crds/rbac.platformengineers.io_capiclusterroles.yaml",
    "deploy/crds/rbac.platformengineers.io_capirolebindings.yaml",
    "deploy/crds/rbac.platformengineers.io_capiroles.yaml",
)

# -- kubectl --
KUBECTL_LOG_TIMEOUT_SECONDS = 30
