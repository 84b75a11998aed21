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

"""CustomResourceDefinition declarations: decode, register and await establishment."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml
from kubernetes.client.rest import ApiException

from oidc_e2e import console, logger
from oidc_e2e.constants import KIND_CRD
from oidc_e2e.errors import DeclarationError, SubmissionError
from oidc_e2e.kube import KubeApis
from oidc_e2e.utils import api_reason
from oidc_e2e.waiter import Waiter


@dataclass(frozen=True)
class CRDDeclaration:
    """A decoded CRD declaration file."""

    path: Path
    name: str
    manifest: dict


def load_crd(path: Path) -> CRDDeclaration:
    """Read and decode a CRD declaration.

    The object name is recovered from the declaration itself; nothing about
    the file name is assumed.

    Args:
        path: YAML file holding a single CustomResourceDefinition.

    Returns:
        The decoded declaration.

    Raises:
        DeclarationError: If the file is unreadable, not YAML, not a CRD or unnamed.
    """
    try:
        manifest = yaml.safe_load(Path(path).read_text())
    except OSError as err:
        raise DeclarationError(path, f"failed to read CRD file: {err}") from err
    except yaml.YAMLError as err:
        raise DeclarationError(path, f"failed to decode CRD YAML: {err}") from err

    if not isinstance(manifest, dict):
        raise DeclarationError(path, "expected a YAML mapping")
    if manifest.get("kind") != KIND_CRD:
        raise DeclarationError(path, f"expected kind {KIND_CRD}, got {manifest.get('kind')!r}")
    name = (manifest.get("metadata") or {}).get("name")
    if not name:
        raise DeclarationError(path, "CRD name is empty after decoding")
    return CRDDeclaration(path=Path(path), name=name, manifest=manifest)


def register_crd(apis: KubeApis, waiter: Waiter, path: Path, timeout: float) -> CRDDeclaration:
    """Create the CRD declared in *path* and wait until it is Established.

    Args:
        apis: Session API bundle.
        waiter: Convergence waiter.
        path: CRD declaration file.
        timeout: Seconds to wait for establishment.

    Returns:
        The registered declaration.

    Raises:
        DeclarationError: Before any API call, if the declaration is malformed.
        SubmissionError: If the API server rejects the CRD.
        ConvergenceTimeoutError: If the CRD is not established in time.
    """
    crd = load_crd(path)
    create_crd(apis, crd)
    await_crd(waiter, crd, timeout)
    return crd


def create_crd(apis: KubeApis, crd: CRDDeclaration) -> None:
    """Submit a decoded CRD declaration.

    Raises:
        SubmissionError: If the API server rejects the CRD, including when it
            already exists.
    """
    logger.debug("Creating CRD %s from %s", crd.name, crd.path)
    try:
        apis.apiext_v1.create_custom_resource_definition(body=crd.manifest)
    except ApiException as err:
        raise SubmissionError(KIND_CRD, crd.name, err.status, api_reason(err)) from err


def await_crd(waiter: Waiter, crd: CRDDeclaration, timeout: float) -> None:
    waiter.wait_established(crd.name, timeout)
    console.print(f"[green]  ✓ CRD {crd.name} established[/green]")
