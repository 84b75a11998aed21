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

"""Utility functions for API error classification, command checks and kubectl logs."""

from __future__ import annotations

from pathlib import Path

import sh
from kubernetes.client.rest import ApiException

from oidc_e2e.constants import KUBECTL_LOG_TIMEOUT_SECONDS


def is_not_found(err: BaseException) -> bool:
    """Whether *err* is an API error reporting a missing object.

    Args:
        err: Exception raised by a Kubernetes API call.

    Returns:
        True for a 404 ``ApiException``.
    """
    return isinstance(err, ApiException) and err.status == 404


def api_reason(err: ApiException) -> str:
    """Short human-readable reason of an API error."""
    return err.reason or str(err.body or "")[:200]


def require_command(cmd: str) -> None:
    """Check if a command exists on the system PATH.

    Args:
        cmd: Name of the CLI command to check.

    Raises:
        RuntimeError: If the command is not found.
    """
    try:
        sh.which(cmd)
    except sh.ErrorReturnCode as err:
        raise RuntimeError(f"Required command '{cmd}' not found. Please install it first.") from err


def kubectl_logs(
    namespace: str,
    selector: str,
    kubeconfig: Path,
    context: str | None = None,
    timeout: int = KUBECTL_LOG_TIMEOUT_SECONDS,
) -> str:
    """Fetch the logs of every pod matching *selector* via kubectl.

    Args:
        namespace: Namespace of the pods.
        selector: Label selector (e.g. ``app=kube-oidc-proxy-e2e``).
        kubeconfig: Kubeconfig passed to kubectl.
        context: Kubeconfig context, or None for the current one.
        timeout: Maximum seconds to wait for kubectl.

    Returns:
        Combined log output.

    Raises:
        sh.ErrorReturnCode: If kubectl exits non-zero.
        sh.CommandNotFound: If kubectl is not installed.
    """
    args = ["logs", "-l", selector, "-n", namespace, "--kubeconfig", str(kubeconfig), "--tail=-1"]
    if context:
        args += ["--context", context]
    return str(sh.kubectl(*args, _timeout=timeout))
