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

"""Session configuration, auto-loaded from OIDC_E2E_* env vars."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from oidc_e2e.constants import (
    DEFAULT_AUDIT_WEBHOOK_IMAGE,
    DEFAULT_CLIENT_ID,
    DEFAULT_CRD_FILES,
    DEFAULT_CRD_TIMEOUT_SECONDS,
    DEFAULT_DELETE_TIMEOUT_SECONDS,
    DEFAULT_FAKE_APISERVER_IMAGE,
    DEFAULT_ISSUER_IMAGE,
    DEFAULT_KIND_CLUSTER_NAME,
    DEFAULT_KUBECONFIG,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_PROXY_CLUSTER_NAME,
    DEFAULT_PROXY_IMAGE,
    DEFAULT_READY_TIMEOUT_SECONDS,
    DEFAULT_SETTLE_DELAY_SECONDS,
)


class E2ESettings(BaseSettings):
    """Cluster access, images and convergence budgets for one test session.

    Attributes:
        kubeconfig_path: Kubeconfig with the ambient cluster credentials.
        kube_context: Kubeconfig context to use, or None for the current one.
        repo_root: Repository root that CRD declaration paths are relative to.
        crd_files: CRD declaration files registered for every session.
        kind_cluster_name: kind cluster name; its control-plane host is what
            the proxy dials from inside the cluster.
        proxy_cluster_name: Cluster name the proxy serves under (URL path prefix).
        client_id: OIDC client ID shared by the issuer token and the proxy.
        proxy_image: Container image of the proxy under test.
        issuer_image: Container image of the mock OIDC issuer.
        fake_apiserver_image: Container image of the fake API server.
        audit_webhook_image: Container image of the audit webhook.
        poll_interval: Seconds between convergence polls.
        ready_timeout: Seconds to wait for a deployment to become ready.
        crd_timeout: Seconds to wait for a CRD to become Established.
        delete_timeout: Seconds to wait for a deployment's pods to disappear.
        settle_delay: Seconds to sleep after readiness before an app is used.
        collect_logs: Whether to dump proxy logs with kubectl on teardown.
    """

    model_config = SettingsConfigDict(env_prefix="OIDC_E2E_", extra="ignore")

    kubeconfig_path: Path = Path(DEFAULT_KUBECONFIG)
    kube_context: str | None = None
    repo_root: Path = Path(".")
    crd_files: tuple[str, ...] = DEFAULT_CRD_FILES
    kind_cluster_name: str = DEFAULT_KIND_CLUSTER_NAME
    proxy_cluster_name: str = DEFAULT_PROXY_CLUSTER_NAME
    client_id: str = DEFAULT_CLIENT_ID
    proxy_image: str = DEFAULT_PROXY_IMAGE
    issuer_image: str = DEFAULT_ISSUER_IMAGE
    fake_apiserver_image: str = DEFAULT_FAKE_APISERVER_IMAGE
    audit_webhook_image: str = DEFAULT_AUDIT_WEBHOOK_IMAGE
    poll_interval: float = Field(default=DEFAULT_POLL_INTERVAL_SECONDS, ge=0, le=60)
    ready_timeout: float = Field(default=DEFAULT_READY_TIMEOUT_SECONDS, ge=0)
    crd_timeout: float = Field(default=DEFAULT_CRD_TIMEOUT_SECONDS, ge=0)
    delete_timeout: float = Field(default=DEFAULT_DELETE_TIMEOUT_SECONDS, ge=0)
    settle_delay: float = Field(default=DEFAULT_SETTLE_DELAY_SECONDS, ge=0)
    collect_logs: bool = True

    @field_validator("kubeconfig_path", "repo_root")
    @classmethod
    def _expand_user(cls, value: Path) -> Path:
        return value.expanduser()

    def crd_paths(self) -> list[Path]:
        """Resolve the configured CRD declarations against the repo root.

        Returns:
            Absolute-or-relative paths in declaration order.
        """
        return [self.repo_root / rel for rel in self.crd_files]

    @property
    def control_plane_host(self) -> str:
        """In-cluster host name of the kind control-plane node."""
        return f"{self.kind_cluster_name}-control-plane"
