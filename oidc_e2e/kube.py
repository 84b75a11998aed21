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

"""Per-session Kubernetes API bundle and per-kind create/delete handlers."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from kubernetes import client, config

from oidc_e2e.constants import (
    KIND_CLUSTER_ROLE,
    KIND_CLUSTER_ROLE_BINDING,
    KIND_DEPLOYMENT,
    KIND_SECRET,
    KIND_SERVICE,
    KIND_SERVICE_ACCOUNT,
    NODE_INTERNAL_IP,
)


@dataclass
class KubeApis:
    """API group clients sharing one ``ApiClient``.

    Built per session from an explicit kubeconfig so several sessions can run
    in one process with independent credentials.
    """

    core_v1: Any
    apps_v1: Any
    rbac_v1: Any
    apiext_v1: Any
    api_client: Any = None

    @classmethod
    def from_api_client(cls, api_client: client.ApiClient) -> KubeApis:
        return cls(
            core_v1=client.CoreV1Api(api_client),
            apps_v1=client.AppsV1Api(api_client),
            rbac_v1=client.RbacAuthorizationV1Api(api_client),
            apiext_v1=client.ApiextensionsV1Api(api_client),
            api_client=api_client,
        )

    @classmethod
    def from_kubeconfig(cls, kubeconfig: Path, context: str | None = None) -> KubeApis:
        """Build the bundle without touching the library's global default config.

        Args:
            kubeconfig: Path of the kubeconfig file.
            context: Context name, or None for the current context.
        """
        api_client = config.new_client_from_config(config_file=str(kubeconfig), context=context)
        return cls.from_api_client(api_client)

    def close(self) -> None:
        if self.api_client is not None:
            self.api_client.close()


@dataclass(frozen=True)
class KindHandler:
    """How to create and delete one object kind.

    Attributes:
        namespaced: Whether objects of this kind live inside a namespace.
        create: ``(apis, namespace, body) -> created object``.
        delete: ``(apis, namespace, name) -> status``.
    """

    namespaced: bool
    create: Callable[[KubeApis, str | None, dict], Any]
    delete: Callable[[KubeApis, str | None, str], Any]


KIND_HANDLERS: dict[str, KindHandler] = {
    KIND_SECRET: KindHandler(
        namespaced=True,
        create=lambda apis, ns, body: apis.core_v1.create_namespaced_secret(namespace=ns, body=body),
        delete=lambda apis, ns, name: apis.core_v1.delete_namespaced_secret(name=name, namespace=ns),
    ),
    KIND_SERVICE_ACCOUNT: KindHandler(
        namespaced=True,
        create=lambda apis, ns, body: apis.core_v1.create_namespaced_service_account(namespace=ns, body=body),
        delete=lambda apis, ns, name: apis.core_v1.delete_namespaced_service_account(name=name, namespace=ns),
    ),
    KIND_CLUSTER_ROLE: KindHandler(
        namespaced=False,
        create=lambda apis, ns, body: apis.rbac_v1.create_cluster_role(body=body),
        delete=lambda apis, ns, name: apis.rbac_v1.delete_cluster_role(name=name),
    ),
    KIND_CLUSTER_ROLE_BINDING: KindHandler(
        namespaced=False,
        create=lambda apis, ns, body: apis.rbac_v1.create_cluster_role_binding(body=body),
        delete=lambda apis, ns, name: apis.rbac_v1.delete_cluster_role_binding(name=name),
    ),
    KIND_SERVICE: KindHandler(
        namespaced=True,
        create=lambda apis, ns, body: apis.core_v1.create_namespaced_service(namespace=ns, body=body),
        delete=lambda apis, ns, name: apis.core_v1.delete_namespaced_service(name=name, namespace=ns),
    ),
    KIND_DEPLOYMENT: KindHandler(
        namespaced=True,
        create=lambda apis, ns, body: apis.apps_v1.create_namespaced_deployment(namespace=ns, body=body),
        delete=lambda apis, ns, name: apis.apps_v1.delete_namespaced_deployment(
            name=name, namespace=ns, propagation_policy="Background"),
    ),
}


def handler_for(kind: str) -> KindHandler:
    """Look up the handler of *kind*.

    Raises:
        KeyError: If the kind has no registered handler.
    """
    try:
        return KIND_HANDLERS[kind]
    except KeyError:
        raise KeyError(f"No handler registered for kind '{kind}'") from None


def node_internal_ips(apis: KubeApis) -> list[str]:
    """List the InternalIP address of every node, in API order."""
    ips: list[str] = []
    for node in apis.core_v1.list_node().items:
        for addr in node.status.addresses or []:
            if addr.type == NODE_INTERNAL_IP:
                ips.append(addr.address)
    return ips
