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

"""Test session orchestration composing domain modules into setup and teardown workflows."""

from __future__ import annotations

import enum
import time
from collections.abc import Callable
from dataclasses import replace
from pathlib import Path
from typing import Any

import sh
from kubernetes.client.rest import ApiException
from rich.panel import Panel

from oidc_e2e import console, logger
from oidc_e2e.applier import Applier
from oidc_e2e.client import new_proxy_client, write_ca_file
from oidc_e2e.components import (
    audit_webhook_ca_secret,
    audit_webhook_descriptor,
    audit_webhook_volume,
    fake_apiserver_ca_secret,
    fake_apiserver_descriptor,
    fake_apiserver_volume,
    issuer_descriptor,
    proxy_access_objects,
    proxy_config_objects,
    proxy_descriptor,
)
from oidc_e2e.config import E2ESettings
from oidc_e2e.constants import DEFAULT_BASE_NAME, LABEL_APP, OWNER_KIND_NAMESPACE
from oidc_e2e.crds import CRDDeclaration, await_crd, create_crd, load_crd
from oidc_e2e.errors import SessionStateError, SubmissionError
from oidc_e2e.keys import generate_key_bundle
from oidc_e2e.kube import KubeApis, node_internal_ips
from oidc_e2e.models import AppDescriptor, DeployedApp, NamespaceRef, VolumeSpec
from oidc_e2e.resources import (
    ObjectGraph,
    app_host,
    build_app_graph,
    derive_endpoint,
    graph_object,
    own,
)
from oidc_e2e.teardown import Teardown
from oidc_e2e.utils import api_reason, kubectl_logs
from oidc_e2e.waiter import Waiter


class SessionState(str, enum.Enum):
    """Lifecycle of one test session."""

    UNINITIALIZED = "Uninitialized"
    NAMESPACE_READY = "NamespaceReady"
    DEPENDENCIES_DEPLOYED = "DependenciesDeployed"
    PRIMARY_DEPLOYED = "PrimaryDeployed"
    READY = "Ready"
    TEARING_DOWN = "TearingDown"
    CLOSED = "Closed"


def _default_apis(settings: E2ESettings) -> KubeApis:
    return KubeApis.from_kubeconfig(settings.kubeconfig_path, settings.kube_context)


class E2ESession:
    """One isolated e2e test session: a namespace, the mock issuer, the CRDs and the proxy.

    ``setup()`` walks Uninitialized -> NamespaceReady -> DependenciesDeployed
    -> PrimaryDeployed -> Ready; ``teardown()`` is valid from every state and
    safe to repeat. A failed setup leaves the session where it failed so the
    caller can still tear down whatever was created.

    Args:
        base_name: Prefix of the generated namespace name.
        settings: Session settings, defaults to ``E2ESettings()`` (env driven).
        apis_factory: Builds the API bundle from the settings; replaceable in tests.
        sleep: Sleep function used for polling and settling; replaceable in tests.
    """

    def __init__(
        self,
        base_name: str = DEFAULT_BASE_NAME,
        settings: E2ESettings | None = None,
        apis_factory: Callable[[E2ESettings], KubeApis] = _default_apis,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.base_name = base_name
        self.settings = settings or E2ESettings()
        self.state = SessionState.UNINITIALIZED
        self.apis: KubeApis | None = None
        self.namespace: NamespaceRef | None = None
        self.issuer: DeployedApp | None = None
        self.proxy: DeployedApp | None = None
        self.auxiliary: list[DeployedApp] = []
        self.proxy_client: Any = None

        self._apis_factory = apis_factory
        self._sleep = sleep
        self._graphs: dict[str, ObjectGraph] = {}
        self._crds: list[CRDDeclaration] = []
        self._ca_files: list[Path] = []
        self._applier: Applier | None = None
        self._waiter: Waiter | None = None
        self._teardown: Teardown | None = None

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self) -> E2ESession:
        try:
            self.setup()
        except BaseException:
            try:
                self.teardown()
            except Exception:
                logger.exception("Teardown after failed setup of session %s also failed", self.base_name)
            raise
        return self

    def __exit__(self, *exc: object) -> None:
        self.teardown()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def client_id(self) -> str:
        return self.settings.client_id

    @property
    def issuer_url(self) -> str | None:
        return self.issuer.url if self.issuer else None

    @property
    def proxy_url(self) -> str | None:
        return self.proxy.url if self.proxy else None

    def _require(self, *states: SessionState) -> None:
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise SessionStateError(f"Session is {self.state.value}; expected one of: {allowed}")

    def _step(self, message: str) -> None:
        console.print(f"[yellow]ℹ️  {message}...[/yellow]")

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def setup(self) -> None:
        """Bring the session from Uninitialized to Ready.

        Raises:
            SessionStateError: If the session was already set up.
            SubmissionError: If the API server rejects an object.
            ConvergenceTimeoutError: If an app or CRD does not converge in time.
            DeclarationError: If a CRD declaration is malformed.
        """
        self._require(SessionState.UNINITIALIZED)
        console.print(Panel.fit(f"Setting up e2e session '{self.base_name}'", style="bold blue"))

        self._step("Creating a kubernetes client")
        self._connect()
        self._step("Creating the session namespace")
        self._create_namespace()
        self.state = SessionState.NAMESPACE_READY
        console.print(f"[green]  ✓ Using the namespace {self.namespace.name}[/green]")

        self._step("Deploying mock OIDC issuer")
        self.issuer = self._deploy_app(issuer_descriptor(self.settings, self.namespace.name))
        self._step("Registering CRDs")
        for path in self.settings.crd_paths():
            crd = load_crd(path)
            create_crd(self.apis, crd)
            # only CRDs this session created are deleted on teardown
            self._crds.append(crd)
            await_crd(self._waiter, crd, self.settings.crd_timeout)
        self.state = SessionState.DEPENDENCIES_DEPLOYED

        self._deploy_primary()
        console.print(f"[green]✅ Session ready: proxy at {self.proxy.url}[/green]")

    def _connect(self) -> None:
        self.apis = self._apis_factory(self.settings)
        self._applier = Applier(self.apis)
        self._waiter = Waiter(self.apis, self.settings.poll_interval, sleep=self._sleep)
        self._teardown = Teardown(self.apis, self._waiter)

    def _create_namespace(self) -> None:
        body = {
            "apiVersion": "v1",
            "kind": OWNER_KIND_NAMESPACE,
            "metadata": {"generateName": f"{self.base_name}-"},
        }
        try:
            created = self.apis.core_v1.create_namespace(body=body)
        except ApiException as err:
            raise SubmissionError(OWNER_KIND_NAMESPACE, f"{self.base_name}-*", err.status, api_reason(err)) from err
        self.namespace = NamespaceRef(name=created.metadata.name, uid=created.metadata.uid)

    def _submit_app(self, descriptor: AppDescriptor, extra_objects: list[dict] | tuple = ()) -> DeployedApp:
        """Build and apply an app's graph and derive its endpoint, without waiting."""
        namespace = self.namespace.name
        node_ips = node_internal_ips(self.apis) if descriptor.externally_reachable else []
        key_bundle = generate_key_bundle(app_host(descriptor.name, namespace), node_ips)
        graph = build_app_graph(descriptor, self.namespace, key_bundle, extra_objects)

        # recorded before submission so a partial apply is still torn down
        self._graphs[descriptor.name] = graph
        applied = self._applier.apply(graph)
        self._graphs[descriptor.name] = applied

        url = derive_endpoint(descriptor, namespace, applied, node_ips)
        return DeployedApp(name=descriptor.name, url=url, key_bundle=key_bundle, graph=applied)

    def _await_app(self, app: DeployedApp) -> None:
        self._waiter.wait_ready(self.namespace.name, app.name, self.settings.ready_timeout)
        if self.settings.settle_delay:
            self._sleep(self.settings.settle_delay)

    def _deploy_app(self, descriptor: AppDescriptor, extra_objects: list[dict] | tuple = ()) -> DeployedApp:
        app = self._submit_app(descriptor, extra_objects)
        self._await_app(app)
        console.print(f"[green]  ✓ {app.name} ready at {app.url}[/green]")
        return app

    def _deploy_primary(
        self,
        extra_volumes: tuple[VolumeSpec, ...] = (),
        extra_args: tuple[str, ...] = (),
    ) -> None:
        if extra_args:
            self._step(f"Deploying kube-oidc-proxy with extra args {list(extra_args)}")
        else:
            self._step("Deploying kube-oidc-proxy")
        settings = self.settings
        kubeconfig = Path(settings.kubeconfig_path).read_text()
        descriptor = proxy_descriptor(settings, self.issuer.url, extra_volumes, extra_args)
        extra_objects = proxy_config_objects(settings, kubeconfig, self.issuer.key_bundle)
        extra_objects += proxy_access_objects(settings, self.namespace.name)

        proxy = self._submit_app(descriptor, extra_objects)
        self.state = SessionState.PRIMARY_DEPLOYED
        self._await_app(proxy)
        self.proxy = proxy
        console.print(f"[green]  ✓ {proxy.name} ready at {proxy.url}[/green]")

        self._step("Creating proxy client")
        ca_file = write_ca_file(proxy.key_bundle)
        self._ca_files.append(ca_file)
        self.proxy_client = new_proxy_client(
            proxy.url, settings.proxy_cluster_name, ca_file,
            self.issuer.key_bundle, self.issuer.url, settings.client_id,
        )
        self.state = SessionState.READY

    # ------------------------------------------------------------------
    # Mid-test operations
    # ------------------------------------------------------------------

    def redeploy_proxy(
        self,
        extra_volumes: tuple[VolumeSpec, ...] | list[VolumeSpec] = (),
        extra_args: tuple[str, ...] | list[str] = (),
    ) -> DeployedApp:
        """Replace the running proxy with one built from extra volumes and args.

        Blocks until the old proxy's pods have fully terminated before the new
        graph is submitted.

        Raises:
            SessionStateError: If the session is not Ready.
            ConvergenceTimeoutError: If the old pods outlive the delete timeout
                or the new proxy does not become ready.
        """
        self._require(SessionState.READY)
        name = self.proxy.name
        self._step("Deleting kube-oidc-proxy deployment")
        self._teardown.delete(self._graphs[name])
        self._close_proxy_client()
        self.proxy = None
        self.state = SessionState.DEPENDENCIES_DEPLOYED
        self._teardown.wait_deleted(self.namespace.name, name, self.settings.delete_timeout)

        self._deploy_primary(tuple(extra_volumes), tuple(extra_args))
        return self.proxy

    def _deploy_auxiliary(self, descriptor: AppDescriptor, ca_manifest: Callable, volume: Callable) -> DeployedApp:
        self._require(SessionState.READY)
        app = self._deploy_app(descriptor)
        ca_graph = ObjectGraph(
            app=app.name,
            objects=(graph_object(own(ca_manifest(app.key_bundle), self.namespace)),),
        )
        ca_applied = self._applier.apply(ca_graph)
        secret_name = ca_applied.objects[0].name
        app = replace(
            app,
            graph=app.graph.with_objects(app.graph.objects + ca_applied.objects),
            volumes=(volume(secret_name),),
        )
        self._graphs[app.name] = app.graph
        self.auxiliary.append(app)
        return app

    def deploy_fake_apiserver(self) -> DeployedApp:
        """Deploy the fake API server; its ``volumes`` let a proxy redeploy trust it."""
        self._step("Deploying fake API server")
        return self._deploy_auxiliary(
            fake_apiserver_descriptor(self.settings), fake_apiserver_ca_secret, fake_apiserver_volume,
        )

    def deploy_audit_webhook(self, log_path: str) -> DeployedApp:
        """Deploy the audit webhook; its ``volumes`` let a proxy redeploy trust it."""
        self._step("Deploying audit webhook")
        return self._deploy_auxiliary(
            audit_webhook_descriptor(self.settings, log_path), audit_webhook_ca_secret, audit_webhook_volume,
        )

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def _collect_proxy_logs(self) -> None:
        if not self.settings.collect_logs or self.settings.proxy_image not in self._graphs:
            return
        try:
            output = kubectl_logs(
                self.namespace.name, f"{LABEL_APP}={self.settings.proxy_image}",
                self.settings.kubeconfig_path, self.settings.kube_context,
            )
        except (sh.ErrorReturnCode, sh.CommandNotFound, sh.TimeoutException) as err:
            self._step(f"Failed to gather logs from kube-oidc-proxy: {err}")
            return
        console.print(Panel.fit("kube-oidc-proxy logs", style="bold blue"))
        console.print(output, markup=False, highlight=False)

    def _close_proxy_client(self) -> None:
        if self.proxy_client is not None:
            self.proxy_client.close()
            self.proxy_client = None

    def teardown(self) -> None:
        """Delete everything the session created, newest first, then the namespace.

        Valid from any state and idempotent; a failing delete propagates and
        leaves the session TearingDown so teardown can be retried.

        Raises:
            TeardownError: If a delete fails with anything but not-found.
        """
        if self.state is SessionState.CLOSED:
            return
        self.state = SessionState.TEARING_DOWN
        console.print(Panel.fit(f"Tearing down e2e session '{self.base_name}'", style="bold blue"))

        if self.namespace is not None:
            self._collect_proxy_logs()
            proxy_name = self.settings.proxy_image
            if proxy_name in self._graphs:
                self._step("Deleting kube-oidc-proxy deployment")
                self._teardown.delete(self._graphs[proxy_name])
            for crd in reversed(self._crds):
                self._step(f"Deleting CRD {crd.name}")
                self._teardown.delete_crd_named(crd.name)
            for name, graph in reversed(list(self._graphs.items())):
                if name != proxy_name:
                    self._step(f"Deleting {name}")
                    self._teardown.delete(graph)
            self._step("Deleting test namespace")
            self._teardown.purge_session(self.namespace.name)

        self._close_proxy_client()
        for ca_file in self._ca_files:
            ca_file.unlink(missing_ok=True)
        self._ca_files.clear()
        self._graphs.clear()
        self._crds.clear()
        self.issuer = None
        self.proxy = None
        self.auxiliary.clear()
        if self.apis is not None:
            self.apis.close()
        self.state = SessionState.CLOSED
        logger.info("Session %s closed", self.base_name)
        console.print("[green]✅ Session torn down[/green]")
