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

"""
cli.py - CLI for the kube-oidc-proxy e2e topology.

Subcommands:
    session    Bring a full test session up or purge a kept one
    crds       Register or remove the proxy's CRDs on their own

Examples:
    # Smoke-test a full session against the current kind cluster
    oidc-e2e session up

    # Keep the session for manual poking, then remove it
    oidc-e2e session up --keep
    oidc-e2e session down kube-oidc-proxy-e2e-x7k2p

    # Register the CRDs only
    oidc-e2e crds install

Settings come from OIDC_E2E_* environment variables; see oidc_e2e.config.
"""

from __future__ import annotations

import logging
import sys

import typer

from oidc_e2e import console
from oidc_e2e.commands import crd_cmd, session_cmd

app = typer.Typer(
    help="Deploy, await and tear down the kube-oidc-proxy e2e topology.",
    no_args_is_help=True,
)


@app.callback()
def _main_callback() -> None:
    """Initialize logging for all subcommands."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


app.add_typer(session_cmd.app, name="session")
app.add_typer(crd_cmd.app, name="crds")


def main() -> None:
    try:
        app()
    except Exception as e:
        console.print(f"[red]❌ {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
