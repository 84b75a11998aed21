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

"""Object graph model and the pure builder for one application's objects."""

from __future__ import annotations

import base64
import copy
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field, replace

from oidc_e2e.constants import (
    CLUSTER_DOMAIN,
    KIND_DEPLOYMENT,
    KIND_RANKS,
    KIND_SECRET,
    KIND_SERVICE,
    KIND_SERVICE_ACCOUNT,
    LABEL_APP,
    LABEL_SESSION,
    OWNER_API_VERSION,
    OWNER_KIND_NAMESPACE,
    TLS_CERT_KEY,
    TLS_KEY_KEY,
    TLS_MOUNT_PATH,
    TLS_VOLUME,
)
from oidc_e2e.keys import KeyBundle
from oidc_e2e.kube import handler_for
from oidc_e2e.models import AppDescriptor, NamespaceRef, VolumeSpec


# ============================================================================
# Graph model
# ============================================================================

@dataclass(frozen=True)
class GraphObject:
    """One object of a graph, tagged with its kind and submission rank.

    Attributes:
        kind: Object kind (``Secret``, ``Deployment``...).
        manifest: Manifest body submitted to the API server.
        rank: Submission rank; lower ranks are created first.
        assigned_name: Name the server assigned on creation, if applied.
        node_port: Node port the server allocated, for NodePort services.
    """

    kind: str
    manifest: dict = field(compare=False)
    rank: int
    assigned_name: str | None = None
    node_port: int | None = None

    @property
    def name(self) -> str | None:
        return self.assigned_name or self.manifest.get("metadata", {}).get("name")

    @property
    def namespace(self) -> str | None:
        return self.manifest.get("metadata", {}).get("namespace")

    @property
    def namespaced(self) -> bool:
        return handler_for(self.kind).namespaced

    def resolved(self, name: str, node_port: int | None = None) -> GraphObject:
        """Copy of this object carrying the server-assigned name and port."""
        return replace(self, assigned_name=name, node_port=node_port)


def graph_object(manifest: dict) -> GraphObject:
    """Wrap a manifest, deriving its rank from its kind.

    Raises:
        KeyError: If the manifest kind is not supported.
    """
    kind = manifest["kind"]
    handler_for(kind)
    return GraphObject(kind=kind, manifest=manifest, rank=KIND_RANKS[kind])


@dataclass(frozen=True)
class ObjectGraph:
    """Complete set of objects required to stand up one application."""

    app: str
    objects: tuple[GraphObject, ...] = ()

    def __iter__(self) -> Iterator[GraphObject]:
        return iter(self.objects)

    def __len__(self) -> int:
        return len(self.objects)

    def ordered(self) -> list[GraphObject]:
        """Objects in submission order (rank ascending, stable within a rank)."""
        return sorted(self.objects, key=lambda obj: obj.rank)

    def deletion_order(self) -> list[GraphObject]:
        """Objects in deletion order (rank descending, workload first)."""
        return sorted(self.objects, key=lambda obj: obj.rank, reverse=True)

    def find(self, kind: str, name: str | None = None) -> GraphObject | None:
        """First object of *kind* (optionally with *name*), or None."""
        for obj in self.objects:
            if obj.kind == kind and (name is None or obj.name == name):
                return obj
        return None

    def with_objects(self, objects: Iterable[GraphObject]) -> ObjectGraph:
        return replace(self, objects=tuple(objects))


# ============================================================================
# Manifest helpers
# ============================================================================

def session_labels(namespace: NamespaceRef, app: str | None = None) -> dict[str, str]:
    """Labels marking an object as owned by the session (and optionally an app)."""
    labels = {LABEL_SESSION: namespace.name}
    if app:
        labels[LABEL_APP] = app
    return labels


def namespace_owner_reference(namespace: NamespaceRef) -> dict:
    """Owner reference that lets namespace deletion garbage-collect a cluster object."""
    return {
        "apiVersion": OWNER_API_VERSION,
        "kind": OWNER_KIND_NAMESPACE,
        "name": namespace.name,
        "uid": namespace.uid,
        "blockOwnerDeletion": True,
        "controller": False,
    }


def encode_secret_data(data: dict[str, bytes | str]) -> dict[str, str]:
    """Base64-encode secret payloads the way the API expects them in ``data``."""
    encoded = {}
    for key, value in data.items():
        raw = value.encode() if isinstance(value, str) else value
        encoded[key] = base64.b64encode(raw).decode("ascii")
    return encoded


def secret_manifest(
    data: dict[str, bytes | str],
    name: str | None = None,
    generate_name: str | None = None,
) -> dict:
    """Build an Opaque secret manifest; exactly one of *name* or *generate_name*."""
    if bool(name) == bool(generate_name):
        raise ValueError("secret_manifest needs exactly one of name or generate_name")
    metadata = {"name": name} if name else {"generateName": generate_name}
    return {
        "apiVersion": "v1",
        "kind": KIND_SECRET,
        "metadata": metadata,
        "type": "Opaque",
        "data": encode_secret_data(data),
    }


def own(manifest: dict, namespace: NamespaceRef) -> dict:
    """Attach the session ownership marker to a copy of *manifest*.

    Namespaced objects are placed in the session namespace and labelled;
    cluster-scoped objects are labelled and given an owner reference to the
    namespace object.
    """
    owned = copy.deepcopy(manifest)
    metadata = owned.setdefault("metadata", {})
    labels = metadata.setdefault("labels", {})
    labels.update(session_labels(namespace))
    if handler_for(owned["kind"]).namespaced:
        metadata["namespace"] = namespace.name
    else:
        metadata["ownerReferences"] = [namespace_owner_reference(namespace)]
    return owned


# ============================================================================
# Builder
# ============================================================================

def _volume(spec: VolumeSpec) -> dict:
    return {"name": spec.name, "secret": {"secretName": spec.secret_name}}


def _mount(spec: VolumeSpec) -> dict:
    return {"name": spec.name, "mountPath": spec.path, "readOnly": True}


def _container(descriptor: AppDescriptor, volumes: list[VolumeSpec]) -> dict:
    container: dict = {
        "name": descriptor.name,
        "image": descriptor.image,
        "imagePullPolicy": descriptor.image_pull_policy,
        "args": list(descriptor.args),
        "ports": [{"containerPort": port} for port in descriptor.ports],
        "volumeMounts": [_mount(spec) for spec in volumes],
    }
    if descriptor.command:
        container["command"] = list(descriptor.command)
    if descriptor.env:
        container["env"] = [{"name": key, "value": value} for key, value in descriptor.env]
    if descriptor.readiness is not None:
        probe = descriptor.readiness
        container["readinessProbe"] = {
            "httpGet": {"path": probe.path, "port": probe.port},
            "initialDelaySeconds": probe.initial_delay_seconds,
            "periodSeconds": probe.period_seconds,
        }
    return container


def build_app_graph(
    descriptor: AppDescriptor,
    namespace: NamespaceRef,
    key_bundle: KeyBundle,
    extra_objects: Iterable[dict] = (),
) -> ObjectGraph:
    """Compute the full object graph of one application.

    Pure construction: nothing is submitted. The TLS secret, service account,
    service and deployment all share the app name; *extra_objects* (config
    secrets, access control) are owned by the session and ranked by kind.

    Args:
        descriptor: Application descriptor.
        namespace: Session namespace the app is deployed into.
        key_bundle: Serving certificate and key stored in the TLS secret.
        extra_objects: Additional manifests to submit with the app.

    Returns:
        The object graph.
    """
    name = descriptor.name
    labels = session_labels(namespace, app=name)
    selector = {LABEL_APP: name}

    tls_secret = secret_manifest(
        {TLS_CERT_KEY: key_bundle.cert_pem, TLS_KEY_KEY: key_bundle.key_pem}, name=name,
    )
    service_account = {
        "apiVersion": "v1",
        "kind": KIND_SERVICE_ACCOUNT,
        "metadata": {"name": name},
    }
    service = {
        "apiVersion": "v1",
        "kind": KIND_SERVICE,
        "metadata": {"name": name},
        "spec": {
            "type": descriptor.service_type.value,
            "selector": selector,
            "ports": [{
                "port": descriptor.service_port,
                "protocol": "TCP",
                "targetPort": descriptor.service_port,
            }],
        },
    }

    volumes = [VolumeSpec(name=TLS_VOLUME, secret_name=name, mount_path=TLS_MOUNT_PATH)]
    volumes += list(descriptor.volumes)
    deployment = {
        "apiVersion": "apps/v1",
        "kind": KIND_DEPLOYMENT,
        "metadata": {"name": name},
        "spec": {
            "replicas": descriptor.replicas,
            "selector": {"matchLabels": selector},
            "template": {
                "metadata": {"labels": dict(labels)},
                "spec": {
                    "serviceAccountName": name,
                    "containers": [_container(descriptor, volumes)],
                    "volumes": [_volume(spec) for spec in volumes],
                },
            },
        },
    }

    manifests = [tls_secret, service_account, service, deployment]
    objects = []
    for manifest in manifests:
        owned = own(manifest, namespace)
        owned["metadata"]["labels"].update(labels)
        objects.append(graph_object(owned))
    objects += [graph_object(own(manifest, namespace)) for manifest in extra_objects]
    return ObjectGraph(app=name, objects=tuple(objects))


# ============================================================================
# Endpoints
# ============================================================================

def app_host(name: str, namespace: str) -> str:
    """In-cluster DNS name of the service *name* in *namespace*."""
    return f"{name}.{namespace}.{CLUSTER_DOMAIN}"


def _url_host(address: str) -> str:
    return f"[{address}]" if ":" in address else address


def derive_endpoint(
    descriptor: AppDescriptor,
    namespace: str,
    applied: ObjectGraph,
    node_ips: list[str] | tuple[str, ...] = (),
) -> str:
    """Resolve the URL a deployed app is reachable at.

    Externally reachable apps resolve to the first node address and the node
    port allocated to their service; everything else resolves to the
    service's in-cluster DNS name.

    Args:
        descriptor: Descriptor the app was built from.
        namespace: Session namespace.
        applied: Applied graph, carrying the allocated node port.
        node_ips: Node InternalIPs, in API order.

    Raises:
        ValueError: If an externally reachable app has no allocated node port.
    """
    if descriptor.externally_reachable and node_ips:
        service = applied.find(KIND_SERVICE, descriptor.name)
        if service is None or service.node_port is None:
            raise ValueError(f"Service {namespace}/{descriptor.name} has no allocated node port")
        return f"https://{_url_host(node_ips[0])}:{service.node_port}"
    return f"https://{app_host(descriptor.name, namespace)}:{descriptor.service_port}"
