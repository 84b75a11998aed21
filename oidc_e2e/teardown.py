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

"""Idempotent teardown of object graphs, CRDs and session namespaces."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from kubernetes.client.rest import ApiException

from oidc_e2e import logger
from oidc_e2e.constants import KIND_CRD, LABEL_APP, LABEL_SESSION, OWNER_KIND_NAMESPACE
from oidc_e2e.crds import load_crd
from oidc_e2e.errors import TeardownError
from oidc_e2e.kube import KubeApis, handler_for
from oidc_e2e.resources import ObjectGraph
from oidc_e2e.utils import api_reason, is_not_found
from oidc_e2e.waiter import Waiter


class Teardown:
    """Deletes what the session created; a missing object counts as deleted."""

    def __init__(self, apis: KubeApis, waiter: Waiter) -> None:
        self._apis = apis
        self._waiter = waiter

    def _call_delete(self, kind: str, target: str, fn: Any, /, *args: Any, **kwargs: Any) -> bool:
        """Run a delete call, normalising not-found to success.

        *target* names the object (or selector) in logs and errors only; the
        API call gets its own arguments, so a ``name=`` keyword passes through.

        Returns:
            True if the object was deleted, False if it was already gone.

        Raises:
            TeardownError: On any other API error.
        """
        try:
            fn(*args, **kwargs)
        except ApiException as err:
            if is_not_found(err):
                logger.debug("%s %s already gone", kind, target)
                return False
            raise TeardownError(kind, target, err.status, api_reason(err)) from err
        logger.debug("Deleted %s %s", kind, target)
        return True

    def delete_object(self, kind: str, namespace: str | None, name: str) -> bool:
        """Delete one object of a supported kind.

        Returns:
            True if the object was deleted, False if it did not exist.
        """
        handler = handler_for(kind)
        return self._call_delete(kind, name, handler.delete, self._apis, namespace, name)

    def delete(self, graph: ObjectGraph) -> None:
        """Delete every named object of *graph*, workload controller first.

        Objects that were never created under a server-generated name have no
        name to delete by and are skipped. Safe to call repeatedly.

        Raises:
            TeardownError: If a delete fails with anything but not-found.
        """
        for obj in graph.deletion_order():
            if not obj.name:
                continue
            self.delete_object(obj.kind, obj.namespace, obj.name)

    def wait_deleted(self, namespace: str, name: str, timeout: float) -> None:
        """Block until deployment *name* and all of its pods are gone.

        Raises:
            ConvergenceTimeoutError: If pods are still terminating after *timeout*.
        """
        def _probe() -> tuple[bool, dict[str, Any]]:
            try:
                self._apis.apps_v1.read_namespaced_deployment(name=name, namespace=namespace)
                present = True
            except ApiException as err:
                if not is_not_found(err):
                    raise
                present = False
            pods = self._apis.core_v1.list_namespaced_pod(
                namespace=namespace, label_selector=f"{LABEL_APP}={name}",
            )
            remaining = [pod.metadata.name for pod in pods.items]
            return not present and not remaining, {"deployment": present, "pods": remaining}

        self._waiter.poll(_probe, timeout, f"deployment {namespace}/{name} to be deleted")

    def delete_crd(self, path: Path) -> bool:
        """Decode the CRD declaration at *path* and delete the CRD by its declared name.

        Raises:
            DeclarationError: Before any API call, if the declaration is malformed.
            TeardownError: If the delete fails with anything but not-found.
        """
        return self.delete_crd_named(load_crd(path).name)

    def delete_crd_named(self, name: str) -> bool:
        """Delete the CRD *name*; not-found counts as deleted."""
        return self._call_delete(
            KIND_CRD, name, self._apis.apiext_v1.delete_custom_resource_definition, name=name,
        )

    def purge_session(self, namespace: str) -> None:
        """Delete the session's labelled cluster-scoped objects, then its namespace.

        Namespace deletion does not reach cluster-scoped objects, so they are
        removed by label even if their graphs were never recorded.
        """
        selector = f"{LABEL_SESSION}={namespace}"
        rbac = self._apis.rbac_v1
        self._call_delete(
            "ClusterRoleBinding", selector, rbac.delete_collection_cluster_role_binding,
            label_selector=selector,
        )
        self._call_delete(
            "ClusterRole", selector, rbac.delete_collection_cluster_role, label_selector=selector,
        )
        self._call_delete(
            OWNER_KIND_NAMESPACE, namespace, self._apis.core_v1.delete_namespace, name=namespace,
        )
