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

"""Shared fixtures: an in-memory fake of the Kubernetes API groups the session uses."""

from __future__ import annotations

import itertools
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest
from kubernetes.client import ApiException

from oidc_e2e.config import E2ESettings
from oidc_e2e.kube import KubeApis

NODE_PORT = 30443

KUBECONFIG = """\
apiVersion: v1
kind: Config
clusters:
- cluster:
    certificate-authority-data: ZmFrZQ==
    server: https://127.0.0.1:40123
  name: kind-kube-oidc-proxy-e2e
contexts:
- context:
    cluster: kind-kube-oidc-proxy-e2e
    user: kind-kube-oidc-proxy-e2e
  name: kind-kube-oidc-proxy-e2e
current-context: kind-kube-oidc-proxy-e2e
users:
- name: kind-kube-oidc-proxy-e2e
  user:
    token: fake
"""

CRD_TEMPLATE = """\
apiVersion: apiextensions.k8s.io/v1
kind: CustomResourceDefinition
metadata:
  name: {name}
spec:
  group: rbac.platformengineers.io
  names:
    kind: {kind}
    plural: {plural}
  scope: Namespaced
"""

CRD_NAMES = ("capiroles.rbac.platformengineers.io", "capirolebindings.rbac.platformengineers.io")


class FakeCluster:
    """Records every call and keeps created objects keyed by (kind, namespace, name).

    Knobs:
        fail_create / fail_delete: kind -> HTTP status raised on that verb.
        ready_after: deployment name -> number of not-ready reads before ready.
        never_ready: deployments that never report a ready replica.
        linger_polls: deployment name -> pod-list polls the pods outlive the delete.
        crd_conditions: (type, status) pairs every CRD reports.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, str]] = []
        self.objects: dict[tuple[str, str | None, str], dict] = {}
        self.fail_create: dict[str, int] = {}
        self.fail_delete: dict[str, int] = {}
        self.ready_after: dict[str, int] = {}
        self.never_ready: set[str] = set()
        self.linger_polls: dict[str, int] = {}
        self.crd_conditions: list[tuple[str, str]] = [("Established", "True")]
        self.node_ips: list[str] = ["172.18.0.2", "172.18.0.3"]
        self.reads: dict[str, int] = {}
        self._lingering: dict[str, int] = {}
        self._suffix = itertools.count(1)

    # -- helpers used by the fake APIs --

    def create(self, kind: str, namespace: str | None, body: dict) -> SimpleNamespace:
        metadata = body.get("metadata", {})
        name = metadata.get("name") or f"{metadata['generateName']}{next(self._suffix):05d}"
        self.calls.append(("create", kind, name))
        if kind in self.fail_create:
            raise ApiException(status=self.fail_create[kind], reason="Forbidden")
        key = (kind, namespace, name)
        if key in self.objects:
            raise ApiException(status=409, reason="AlreadyExists")
        self.objects[key] = body
        node_port = None
        if kind == "Service" and body["spec"].get("type") == "NodePort":
            node_port = NODE_PORT
        return SimpleNamespace(
            metadata=SimpleNamespace(name=name, uid=f"uid-{name}"),
            spec=SimpleNamespace(ports=[SimpleNamespace(node_port=node_port)]),
        )

    def delete(self, kind: str, namespace: str | None, name: str) -> SimpleNamespace:
        self.calls.append(("delete", kind, name))
        if kind in self.fail_delete:
            raise ApiException(status=self.fail_delete[kind], reason="InternalError")
        key = (kind, namespace, name)
        if key not in self.objects:
            raise ApiException(status=404, reason="NotFound")
        del self.objects[key]
        if kind == "Deployment":
            self._lingering[name] = self.linger_polls.get(name, 0)
        if kind == "Namespace":
            for other in [k for k in self.objects if k[1] == name]:
                del self.objects[other]
        return SimpleNamespace(status="Success")

    def delete_labelled(self, kind: str, label_selector: str) -> SimpleNamespace:
        self.calls.append(("delete_collection", kind, label_selector))
        label, value = label_selector.split("=", 1)
        for key, body in list(self.objects.items()):
            if key[0] == kind and body["metadata"].get("labels", {}).get(label) == value:
                del self.objects[key]
        return SimpleNamespace(status="Success")

    def names(self, kind: str) -> list[str]:
        return [key[2] for key in self.objects if key[0] == kind]

    def created(self) -> list[tuple[str, str]]:
        return [(kind, name) for verb, kind, name in self.calls if verb == "create"]

    def apis(self) -> KubeApis:
        return KubeApis(
            core_v1=FakeCoreV1(self),
            apps_v1=FakeAppsV1(self),
            rbac_v1=FakeRbacV1(self),
            apiext_v1=FakeApiextV1(self),
        )


class FakeCoreV1:
    def __init__(self, cluster: FakeCluster) -> None:
        self.cluster = cluster

    def create_namespace(self, body: dict) -> SimpleNamespace:
        return self.cluster.create("Namespace", None, body)

    def delete_namespace(self, name: str) -> SimpleNamespace:
        return self.cluster.delete("Namespace", None, name)

    def create_namespaced_secret(self, namespace: str, body: dict) -> SimpleNamespace:
        return self.cluster.create("Secret", namespace, body)

    def delete_namespaced_secret(self, name: str, namespace: str) -> SimpleNamespace:
        return self.cluster.delete("Secret", namespace, name)

    def create_namespaced_service_account(self, namespace: str, body: dict) -> SimpleNamespace:
        return self.cluster.create("ServiceAccount", namespace, body)

    def delete_namespaced_service_account(self, name: str, namespace: str) -> SimpleNamespace:
        return self.cluster.delete("ServiceAccount", namespace, name)

    def create_namespaced_service(self, namespace: str, body: dict) -> SimpleNamespace:
        return self.cluster.create("Service", namespace, body)

    def delete_namespaced_service(self, name: str, namespace: str) -> SimpleNamespace:
        return self.cluster.delete("Service", namespace, name)

    def list_node(self) -> SimpleNamespace:
        return SimpleNamespace(items=[
            SimpleNamespace(status=SimpleNamespace(addresses=[
                SimpleNamespace(type="Hostname", address=f"node-{i}"),
                SimpleNamespace(type="InternalIP", address=ip),
            ]))
            for i, ip in enumerate(self.cluster.node_ips)
        ])

    def list_namespaced_pod(self, namespace: str, label_selector: str) -> SimpleNamespace:
        name = label_selector.split("=", 1)[1]
        self.cluster.calls.append(("list_pods", "Pod", name))
        running = ("Deployment", namespace, name) in self.cluster.objects
        lingering = self.cluster._lingering.get(name, 0)
        if not running and lingering > 0:
            self.cluster._lingering[name] = lingering - 1
        items = [SimpleNamespace(metadata=SimpleNamespace(name=f"{name}-pod"))] if running or lingering else []
        return SimpleNamespace(items=items)


class FakeAppsV1:
    def __init__(self, cluster: FakeCluster) -> None:
        self.cluster = cluster

    def create_namespaced_deployment(self, namespace: str, body: dict) -> SimpleNamespace:
        return self.cluster.create("Deployment", namespace, body)

    def delete_namespaced_deployment(self, name: str, namespace: str, propagation_policy: str) -> SimpleNamespace:
        return self.cluster.delete("Deployment", namespace, name)

    def read_namespaced_deployment(self, name: str, namespace: str) -> SimpleNamespace:
        cluster = self.cluster
        cluster.calls.append(("read", "Deployment", name))
        if ("Deployment", namespace, name) not in cluster.objects:
            raise ApiException(status=404, reason="NotFound")
        cluster.reads[name] = cluster.reads.get(name, 0) + 1
        ready = name not in cluster.never_ready and cluster.reads[name] > cluster.ready_after.get(name, 0)
        return SimpleNamespace(
            metadata=SimpleNamespace(name=name, generation=1),
            status=SimpleNamespace(observed_generation=1, ready_replicas=1 if ready else None),
        )


class FakeRbacV1:
    def __init__(self, cluster: FakeCluster) -> None:
        self.cluster = cluster

    def create_cluster_role(self, body: dict) -> SimpleNamespace:
        return self.cluster.create("ClusterRole", None, body)

    def delete_cluster_role(self, name: str) -> SimpleNamespace:
        return self.cluster.delete("ClusterRole", None, name)

    def create_cluster_role_binding(self, body: dict) -> SimpleNamespace:
        return self.cluster.create("ClusterRoleBinding", None, body)

    def delete_cluster_role_binding(self, name: str) -> SimpleNamespace:
        return self.cluster.delete("ClusterRoleBinding", None, name)

    def delete_collection_cluster_role(self, label_selector: str) -> SimpleNamespace:
        return self.cluster.delete_labelled("ClusterRole", label_selector)

    def delete_collection_cluster_role_binding(self, label_selector: str) -> SimpleNamespace:
        return self.cluster.delete_labelled("ClusterRoleBinding", label_selector)


class FakeApiextV1:
    def __init__(self, cluster: FakeCluster) -> None:
        self.cluster = cluster

    def create_custom_resource_definition(self, body: dict) -> SimpleNamespace:
        return self.cluster.create("CustomResourceDefinition", None, body)

    def delete_custom_resource_definition(self, name: str) -> SimpleNamespace:
        return self.cluster.delete("CustomResourceDefinition", None, name)

    def read_custom_resource_definition(self, name: str) -> SimpleNamespace:
        self.cluster.calls.append(("read", "CustomResourceDefinition", name))
        if ("CustomResourceDefinition", None, name) not in self.cluster.objects:
            raise ApiException(status=404, reason="NotFound")
        conditions = [SimpleNamespace(type=t, status=s) for t, s in self.cluster.crd_conditions]
        return SimpleNamespace(status=SimpleNamespace(conditions=conditions))


def write_crd(path: Path, name: str) -> Path:
    plural = name.split(".", 1)[0]
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(CRD_TEMPLATE.format(name=name, kind=plural.capitalize(), plural=plural))
    return path


@pytest.fixture
def cluster() -> FakeCluster:
    return FakeCluster()


@pytest.fixture
def apis(cluster: FakeCluster) -> KubeApis:
    return cluster.apis()


@pytest.fixture
def settings(tmp_path: Path) -> E2ESettings:
    kubeconfig = tmp_path / "kubeconfig"
    kubeconfig.write_text(KUBECONFIG)
    crd_files = []
    for name in CRD_NAMES:
        rel = f"deploy/crds/{name}.yaml"
        write_crd(tmp_path / rel, name)
        crd_files.append(rel)
    return E2ESettings(
        kubeconfig_path=kubeconfig,
        repo_root=tmp_path,
        crd_files=tuple(crd_files),
        poll_interval=0,
        ready_timeout=0.2,
        crd_timeout=0.2,
        delete_timeout=0.2,
        settle_delay=0,
        collect_logs=False,
    )


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def fake_sleep(sleeps: list[float]) -> Any:
    return sleeps.append


@pytest.fixture(scope="session")
def key_bundle():
    from oidc_e2e.keys import generate_key_bundle

    return generate_key_bundle("kube-oidc-proxy-e2e.ns.svc.cluster.local", ["172.18.0.2"])
