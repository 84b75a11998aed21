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

"""Error taxonomy for submission, convergence, teardown and declarations."""

from __future__ import annotations

from typing import Any


class E2EError(RuntimeError):
    """Base class for every failure raised by the orchestrator."""


class SubmissionError(E2EError):
    """The API server rejected an object creation."""

    def __init__(self, kind: str, name: str, status: int | None, reason: str) -> None:
        self.kind = kind
        self.name = name
        self.status = status
        super().__init__(f"Failed to create {kind} '{name}' (status={status}): {reason}")


class ConvergenceTimeoutError(E2EError):
    """A convergence condition did not hold within its budget."""

    def __init__(self, description: str, timeout: float, last_status: Any = None) -> None:
        self.description = description
        self.timeout = timeout
        self.last_status = last_status
        super().__init__(
            f"Timed out after {timeout}s waiting for {description} (last status: {last_status})"
        )


class TeardownError(E2EError):
    """A delete failed with something other than not-found."""

    def __init__(self, kind: str, name: str, status: int | None, reason: str) -> None:
        self.kind = kind
        self.name = name
        self.status = status
        super().__init__(f"Failed to delete {kind} '{name}' (status={status}): {reason}")


class DeclarationError(E2EError):
    """An external declaration file could not be read or decoded."""

    def __init__(self, path: object, reason: str) -> None:
        self.path = path
        super().__init__(f"Invalid declaration {path}: {reason}")


class SessionStateError(E2EError):
    """An operation was requested in a session state that does not allow it."""
