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

"""Application descriptors and the values a deployment hands back."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from oidc_e2e.constants import SECURE_PORT

if TYPE_CHECKING:
    from oidc_e2e.keys import KeyBundle
    from oidc_e2e.resources import ObjectGraph


class ServiceType(str, enum.Enum):
    """How a deployed application is exposed."""

    CLUSTER_IP = "ClusterIP"
    NODE_PORT = "NodePort"


@dataclass(frozen=True)
class VolumeSpec:
    """A secret-backed volume and where the container sees it.

    Attributes:
        name: Volume name inside the pod.
        secret_name: Secret the volume is projected from.
        mount_path: Container mount path, defaults to ``/<name>``.
    """

    name: str
    secret_name: str
    mount_path: str = ""

    @property
    def path(self) -> str:
        return self.mount_path or f"/{self.name}"


@dataclass(frozen=True)
class ReadinessProbe:
    """HTTP readiness probe definition."""

    path: str
    port: int
    initial_delay_seconds: int = 1
    period_seconds: int = 3


@dataclass(frozen=True)
class AppDescriptor:
    """Everything needed to build the object graph of one application.

    Attributes:
        name: App name; used for the deployment, service, service account and TLS secret.
        image: Container image reference.
        args: Container arguments.
        command: Container entrypoint override, empty to keep the image default.
        volumes: Secret volumes mounted into the container.
        ports: Container ports.
        readiness: Readiness probe, or None.
        env: Environment variables as (name, value) pairs.
        service_type: Cluster-internal or externally reachable exposure.
        service_port: Port the service listens on and forwards to.
        image_pull_policy: Image pull policy; kind-loaded images are never pulled.
        replicas: Desired replica count.
    """

    name: str
    image: str
    args: tuple[str, ...] = ()
    command: tuple[str, ...] = ()
    volumes: tuple[VolumeSpec, ...] = ()
    ports: tuple[int, ...] = (SECURE_PORT,)
    readiness: ReadinessProbe | None = None
    env: tuple[tuple[str, str], ...] = ()
    service_type: ServiceType = ServiceType.CLUSTER_IP
    service_port: int = SECURE_PORT
    image_pull_policy: str = "Never"
    replicas: int = 1

    def with_extra(
        self,
        volumes: tuple[VolumeSpec, ...] = (),
        args: tuple[str, ...] = (),
    ) -> AppDescriptor:
        """Return a copy with additional volumes and arguments appended."""
        return replace(self, volumes=self.volumes + tuple(volumes), args=self.args + tuple(args))

    @property
    def externally_reachable(self) -> bool:
        return self.service_type is ServiceType.NODE_PORT


@dataclass(frozen=True)
class NamespaceRef:
    """Identity of the session namespace, the ownership root of every object."""

    name: str
    uid: str


@dataclass(frozen=True)
class DeployedApp:
    """A deployed application as handed back to the caller.

    Attributes:
        name: App name.
        url: Deployed endpoint, fixed for the lifetime of the deployment.
        key_bundle: Serving certificate and key generated for the app.
        graph: Applied object graph, with server-assigned names.
        volumes: Volumes other apps can mount to trust this one, if any.
    """

    name: str
    url: str
    key_bundle: KeyBundle
    graph: ObjectGraph
    volumes: tuple[VolumeSpec, ...] = field(default=())
