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

"""Bounded fixed-interval polling for deployment readiness and CRD establishment."""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

from tenacity import RetryError, Retrying, retry_if_result, stop_after_delay, wait_fixed

from oidc_e2e import logger
from oidc_e2e.constants import CONDITION_ESTABLISHED, CONDITION_TRUE
from oidc_e2e.errors import ConvergenceTimeoutError
from oidc_e2e.kube import KubeApis

Probe = Callable[[], "tuple[bool, Any]"]


def poll_until(
    probe: Probe,
    *,
    timeout: float,
    interval: float,
    description: str,
    sleep: Callable[[float], None] = time.sleep,
) -> Any:
    """Evaluate *probe* every *interval* seconds until it reports done.

    The probe returns ``(done, status)``. API errors raised by the probe are
    not retried and propagate unchanged.

    Args:
        probe: Read-only status check.
        timeout: Seconds after which polling stops.
        interval: Fixed seconds between polls.
        description: What is being waited for, used in the timeout error.
        sleep: Sleep function, replaceable in tests.

    Returns:
        The status observed by the successful poll.

    Raises:
        ConvergenceTimeoutError: If the probe never reported done in time;
            carries the last observed status.
    """
    observed: dict[str, Any] = {}

    def _attempt() -> bool:
        done, status = probe()
        observed["status"] = status
        logger.debug("Polled %s: done=%s status=%s", description, done, status)
        return done

    retrying = Retrying(
        stop=stop_after_delay(timeout),
        wait=wait_fixed(interval),
        retry=retry_if_result(lambda done: not done),
        sleep=sleep,
    )
    try:
        retrying(_attempt)
    except RetryError as err:
        raise ConvergenceTimeoutError(description, timeout, observed.get("status")) from err
    return observed.get("status")


def deployment_status(deployment: Any) -> dict[str, Any]:
    """Snapshot of the readiness-relevant fields of a deployment."""
    status = deployment.status
    return {
        "generation": deployment.metadata.generation,
        "observed_generation": getattr(status, "observed_generation", None) if status else None,
        "ready_replicas": (getattr(status, "ready_replicas", None) or 0) if status else 0,
    }


def deployment_ready(snapshot: dict[str, Any]) -> bool:
    """At least one ready replica, reported against the current spec generation."""
    return (
        snapshot["ready_replicas"] >= 1
        and snapshot["observed_generation"] is not None
        and snapshot["observed_generation"] == snapshot["generation"]
    )


def crd_conditions(crd: Any) -> list[tuple[str, str]]:
    """(type, status) pairs of a CRD's conditions."""
    status = getattr(crd, "status", None)
    conditions = getattr(status, "conditions", None) or []
    return [(cond.type, cond.status) for cond in conditions]


def crd_established(conditions: list[tuple[str, str]]) -> bool:
    """Whether a condition literally named Established has status "True"."""
    return (CONDITION_ESTABLISHED, CONDITION_TRUE) in conditions


class Waiter:
    """Read-only convergence checks against the API server."""

    def __init__(
        self,
        apis: KubeApis,
        interval: float,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._apis = apis
        self.interval = interval
        self._sleep = sleep

    def poll(self, probe: Probe, timeout: float, description: str) -> Any:
        return poll_until(
            probe, timeout=timeout, interval=self.interval, description=description, sleep=self._sleep,
        )

    def wait_ready(self, namespace: str, name: str, timeout: float) -> dict[str, Any]:
        """Wait for deployment *name* to report a ready replica for its current generation.

        Raises:
            ConvergenceTimeoutError: If the deployment is not ready within *timeout*.
        """
        def _probe() -> tuple[bool, dict[str, Any]]:
            deployment = self._apis.apps_v1.read_namespaced_deployment(name=name, namespace=namespace)
            snapshot = deployment_status(deployment)
            return deployment_ready(snapshot), snapshot

        return self.poll(_probe, timeout, f"deployment {namespace}/{name} to be ready")

    def wait_established(self, name: str, timeout: float) -> list[tuple[str, str]]:
        """Wait for CRD *name* to carry ``Established=True``.

        Raises:
            ConvergenceTimeoutError: If the CRD is not established within *timeout*.
        """
        def _probe() -> tuple[bool, list[tuple[str, str]]]:
            crd = self._apis.apiext_v1.read_custom_resource_definition(name=name)
            conditions = crd_conditions(crd)
            return crd_established(conditions), conditions

        return self.poll(_probe, timeout, f"CRD {name} to be established")
