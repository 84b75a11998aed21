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

"""CRD subcommands (install, remove)."""

from __future__ import annotations

from pathlib import Path

import typer

from oidc_e2e import console
from oidc_e2e.config import E2ESettings
from oidc_e2e.crds import register_crd
from oidc_e2e.kube import KubeApis
from oidc_e2e.teardown import Teardown
from oidc_e2e.waiter import Waiter

app = typer.Typer(help="Register or remove the proxy CRDs.")


def _apis(kubeconfig: Path | None) -> tuple[E2ESettings, KubeApis]:
    settings = E2ESettings()
    if kubeconfig is not None:
        settings = settings.model_copy(update={"kubeconfig_path": kubeconfig})
    return settings, KubeApis.from_kubeconfig(settings.kubeconfig_path, settings.kube_context)


@app.command("install")
def install(
    kubeconfig: Path | None = typer.Option(None, "--kubeconfig", help="Kubeconfig of the kind cluster"),
) -> None:
    """Register every configured CRD and wait until each is established."""
    settings, apis = _apis(kubeconfig)
    try:
        waiter = Waiter(apis, settings.poll_interval)
        for path in settings.crd_paths():
            register_crd(apis, waiter, path, settings.crd_timeout)
    finally:
        apis.close()
    console.print("[green]✅ CRDs installed[/green]")


@app.command("remove")
def remove(
    kubeconfig: Path | None = typer.Option(None, "--kubeconfig", help="Kubeconfig of the kind cluster"),
) -> None:
    """Delete every configured CRD; already-absent ones are skipped."""
    settings, apis = _apis(kubeconfig)
    try:
        teardown = Teardown(apis, Waiter(apis, settings.poll_interval))
        for path in settings.crd_paths():
            if teardown.delete_crd(path):
                console.print(f"[green]  ✓ Deleted CRD from {path.name}[/green]")
            else:
                console.print(f"[yellow]ℹ️  CRD from {path.name} not present[/yellow]")
    finally:
        apis.close()
    console.print("[green]✅ CRDs removed[/green]")
