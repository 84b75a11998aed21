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

"""Session subcommands (up, down)."""

from __future__ import annotations

from pathlib import Path

import typer

from oidc_e2e import console
from oidc_e2e.config import E2ESettings
from oidc_e2e.constants import DEFAULT_BASE_NAME
from oidc_e2e.kube import KubeApis
from oidc_e2e.orchestrator import E2ESession
from oidc_e2e.teardown import Teardown
from oidc_e2e.utils import require_command
from oidc_e2e.waiter import Waiter

app = typer.Typer(help="Manage e2e test sessions.")


def _settings(kubeconfig: Path | None, no_logs: bool = False) -> E2ESettings:
    settings = E2ESettings()
    updates: dict = {}
    if kubeconfig is not None:
        updates["kubeconfig_path"] = kubeconfig
    if no_logs:
        updates["collect_logs"] = False
    if updates:
        settings = settings.model_copy(update=updates)
    return settings


@app.command("up")
def up(
    base_name: str = typer.Option(DEFAULT_BASE_NAME, "--base-name", help="Prefix of the session namespace"),
    keep: bool = typer.Option(False, "--keep", help="Leave the session running instead of tearing it down"),
    kubeconfig: Path | None = typer.Option(None, "--kubeconfig", help="Kubeconfig of the kind cluster"),
    no_logs: bool = typer.Option(False, "--no-logs", help="Skip dumping proxy logs on teardown"),
) -> None:
    """Set up a full session; tear it down again unless --keep is given."""
    settings = _settings(kubeconfig, no_logs)
    if settings.collect_logs:
        require_command("kubectl")

    session = E2ESession(base_name=base_name, settings=settings)
    try:
        session.setup()
    except Exception:
        session.teardown()
        raise
    console.print(f"[green]Namespace:[/green]  {session.namespace.name}")
    console.print(f"[green]Issuer:[/green]     {session.issuer_url}")
    console.print(f"[green]Proxy:[/green]      {session.proxy_url}")

    if not keep:
        session.teardown()
        return
    console.print(f"[yellow]ℹ️  Remove with: oidc-e2e session down {session.namespace.name}[/yellow]")


@app.command("down")
def down(
    namespace: str = typer.Argument(..., help="Namespace of a kept session"),
    kubeconfig: Path | None = typer.Option(None, "--kubeconfig", help="Kubeconfig of the kind cluster"),
) -> None:
    """Purge a kept session: its cluster-scoped access objects and its namespace."""
    settings = _settings(kubeconfig)
    apis = KubeApis.from_kubeconfig(settings.kubeconfig_path, settings.kube_context)
    try:
        Teardown(apis, Waiter(apis, settings.poll_interval)).purge_session(namespace)
    finally:
        apis.close()
    console.print(f"[green]✅ Session {namespace} purged[/green]")
