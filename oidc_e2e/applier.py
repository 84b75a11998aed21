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

"""Rank-ordered submission of an object graph."""

from __future__ import annotations

from typing import Any

from kubernetes.client.rest import ApiException

from oidc_e2e import logger
from oidc_e2e.constants import KIND_SERVICE
from oidc_e2e.errors import SubmissionError
from oidc_e2e.kube import KubeApis, handler_for
from oidc_e2e.resources import GraphObject, ObjectGraph
from oidc_e2e.utils import api_reason


def _allocated_node_port(service: Any) -> int | None:
    ports = getattr(service.spec, "ports", None) or []
    return ports[0].node_port if ports else None


def _display_name(obj: GraphObject) -> str:
    if obj.name:
        return obj.name
    return f"{obj.manifest.get('metadata', {}).get('generateName', '')}*"


class Applier:
    """Submits object graphs in rank order: secrets, identity, access control,
    service, and the workload controller last.

    Fails fast on the first rejected submission and never rolls back; whatever
    was created stays for the caller's teardown. Applying the same graph twice
    without an intervening teardown fails on the duplicate names.
    """

    def __init__(self, apis: KubeApis) -> None:
        self._apis = apis

    def apply(self, graph: ObjectGraph) -> ObjectGraph:
        """Create every object of *graph*.

        Args:
            graph: Graph to submit.

        Returns:
            The graph, in submission order, with server-assigned names and
            allocated node ports recorded on each object.

        Raises:
            SubmissionError: On the first object the API server rejects.
        """
        logger.info("Applying %d objects for %s", len(graph), graph.app)
        applied = [self._submit(obj) for obj in graph.ordered()]
        return graph.with_objects(applied)

    def _submit(self, obj: GraphObject) -> GraphObject:
        handler = handler_for(obj.kind)
        namespace = obj.namespace if handler.namespaced else None
        logger.debug("Creating %s %s (rank %d)", obj.kind, _display_name(obj), obj.rank)
        try:
            created = handler.create(self._apis, namespace, obj.manifest)
        except ApiException as err:
            raise SubmissionError(obj.kind, _display_name(obj), err.status, api_reason(err)) from err

        node_port = _allocated_node_port(created) if obj.kind == KIND_SERVICE else None
        return obj.resolved(created.metadata.name, node_port=node_port)
