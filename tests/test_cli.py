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

from __future__ import annotations

import pytest
from typer.testing import CliRunner

from conftest import CRD_NAMES
from oidc_e2e.cli import app
from oidc_e2e.commands import crd_cmd, session_cmd
from oidc_e2e.kube import KubeApis

runner = CliRunner()


class RecordingSession:
    instances: list[RecordingSession] = []

    def __init__(self, base_name, settings):
        self.base_name = base_name
        self.settings = settings
        self.events: list[str] = []
        self.namespace = type("Ref", (), {"name": f"{base_name}-abcde"})()
        self.issuer_url = "https://issuer:6443"
        self.proxy_url = "https://172.18.0.2:30443"
        RecordingSession.instances.append(self)

    def setup(self):
        self.events.append("setup")

    def teardown(self):
        self.events.append("teardown")


@pytest.fixture(autouse=True)
def patched(monkeypatch, settings, apis):
    RecordingSession.instances = []
    monkeypatch.setattr(session_cmd, "E2ESession", RecordingSession)
    monkeypatch.setattr(session_cmd, "require_command", lambda cmd: None)
    monkeypatch.setattr(session_cmd, "E2ESettings", lambda: settings)
    monkeypatch.setattr(crd_cmd, "E2ESettings", lambda: settings)
    monkeypatch.setattr(KubeApis, "from_kubeconfig", classmethod(lambda cls, path, context=None: apis))


def test_session_up_tears_down_by_default():
    result = runner.invoke(app, ["session", "up", "--base-name", "smoke"])

    assert result.exit_code == 0, result.output
    (session,) = RecordingSession.instances
    assert session.base_name == "smoke"
    assert session.events == ["setup", "teardown"]


def test_session_up_keep_prints_endpoints():
    result = runner.invoke(app, ["session", "up", "--keep", "--no-logs"])

    assert result.exit_code == 0, result.output
    (session,) = RecordingSession.instances
    assert session.events == ["setup"]
    assert session.settings.collect_logs is False
    assert "https://172.18.0.2:30443" in result.output
    assert "session down kube-oidc-proxy-e2e-abcde" in result.output


def test_session_down_purges_namespace(cluster):
    cluster.objects[("Namespace", None, "kept-1")] = {"metadata": {"name": "kept-1"}}
    cluster.objects[("ClusterRole", None, "r")] = {"metadata": {"labels": {"oidc-e2e.io/session": "kept-1"}}}

    result = runner.invoke(app, ["session", "down", "kept-1"])

    assert result.exit_code == 0, result.output
    assert cluster.objects == {}


def test_crds_install_and_remove(cluster):
    result = runner.invoke(app, ["crds", "install"])

    assert result.exit_code == 0, result.output
    assert sorted(cluster.names("CustomResourceDefinition")) == sorted(CRD_NAMES)

    result = runner.invoke(app, ["crds", "remove"])

    assert result.exit_code == 0, result.output
    assert cluster.names("CustomResourceDefinition") == []


def test_crds_remove_when_absent(cluster):
    result = runner.invoke(app, ["crds", "remove"])

    assert result.exit_code == 0, result.output
    assert "not present" in result.output
