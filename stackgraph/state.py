"""Materialization state store.

Holds the last successful ``MaterializedOutput`` per node plus a record of
every materialization attempt. Attempts are written *before* the provider
call is issued, so a crash or cancellation mid-call still leaves a trace of
what may exist provider-side.

The store is optionally backed by a JSON file; it never holds credential
material.
"""

from __future__ import annotations

import json
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any

import structlog

from stackgraph.errors import ConfigError
from stackgraph.models.resources import MaterializedOutput, NodeRef, ResourceKind
from stackgraph.models.results import AttemptStatus, MaterializationAttempt

_log = structlog.get_logger(component="state")

_SCHEMA_VERSION = 1


class StateStore:
    """In-memory state with optional JSON persistence.

    Args:
        path: File to load from and save to. ``None`` keeps state in memory.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(path) if path else None
        self._outputs: dict[NodeRef, MaterializedOutput] = {}
        self._attempts: list[MaterializationAttempt] = []
        if self._path is not None and self._path.exists():
            self._load()

    # ------------------------------------------------------------------
    # Outputs
    # ------------------------------------------------------------------

    def get(self, ref: NodeRef) -> MaterializedOutput | None:
        return self._outputs.get(ref)

    def put(self, output: MaterializedOutput) -> None:
        self._outputs[output.ref] = output
        self._save()

    def forget(self, ref: NodeRef) -> None:
        if self._outputs.pop(ref, None) is not None:
            self._save()

    def outputs(self) -> dict[NodeRef, MaterializedOutput]:
        return dict(self._outputs)

    def __contains__(self, ref: object) -> bool:
        return ref in self._outputs

    def __len__(self) -> int:
        return len(self._outputs)

    # ------------------------------------------------------------------
    # Attempts
    # ------------------------------------------------------------------

    def record_attempt(self, ref: NodeRef, fingerprint: str) -> MaterializationAttempt:
        attempt = MaterializationAttempt(ref=ref, fingerprint=fingerprint)
        self._attempts.append(attempt)
        self._save()
        return attempt

    def finish_attempt(self, attempt: MaterializationAttempt, status: AttemptStatus, error: str = "") -> None:
        attempt.status = status
        attempt.error = error
        self._save()

    def attempts(self, ref: NodeRef | None = None) -> list[MaterializationAttempt]:
        if ref is None:
            return list(self._attempts)
        return [a for a in self._attempts if a.ref == ref]

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _save(self) -> None:
        if self._path is None:
            return
        payload = {
            "version": _SCHEMA_VERSION,
            "outputs": [_output_to_dict(o) for o in self._outputs.values()],
            "attempts": [_attempt_to_dict(a) for a in self._attempts],
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        # Write-then-rename so a crash never leaves a truncated state file.
        fd, tmp = tempfile.mkstemp(dir=self._path.parent, prefix=f".{self._path.name}.")
        with os.fdopen(fd, "w") as fh:
            json.dump(payload, fh, indent=2, sort_keys=True)
        os.replace(tmp, self._path)

    def _load(self) -> None:
        assert self._path is not None
        payload = json.loads(self._path.read_text())
        if payload.get("version") != _SCHEMA_VERSION:
            raise ConfigError(f"Unsupported state file version: {payload.get('version')}")
        for item in payload.get("outputs", []):
            output = _output_from_dict(item)
            self._outputs[output.ref] = output
        for item in payload.get("attempts", []):
            self._attempts.append(_attempt_from_dict(item))
        _log.info("state_loaded", path=str(self._path), outputs=len(self._outputs))


def _ref_to_dict(ref: NodeRef) -> dict[str, str]:
    return {"kind": ref.kind.value, "name": ref.name}


def _ref_from_dict(data: dict[str, Any]) -> NodeRef:
    return NodeRef(ResourceKind(data["kind"]), data["name"])


def _output_to_dict(output: MaterializedOutput) -> dict[str, Any]:
    return {
        "ref": _ref_to_dict(output.ref),
        "resource_id": output.resource_id,
        "attributes": dict(output.attributes),
        "fingerprint": output.fingerprint,
        "materialized_at": output.materialized_at.isoformat(),
    }


def _output_from_dict(data: dict[str, Any]) -> MaterializedOutput:
    return MaterializedOutput(
        ref=_ref_from_dict(data["ref"]),
        resource_id=data["resource_id"],
        attributes=data["attributes"],
        fingerprint=data["fingerprint"],
        materialized_at=datetime.fromisoformat(data["materialized_at"]),
    )


def _attempt_to_dict(attempt: MaterializationAttempt) -> dict[str, Any]:
    return {
        "ref": _ref_to_dict(attempt.ref),
        "fingerprint": attempt.fingerprint,
        "started_at": attempt.started_at.isoformat(),
        "status": attempt.status.value,
        "error": attempt.error,
    }


def _attempt_from_dict(data: dict[str, Any]) -> MaterializationAttempt:
    return MaterializationAttempt(
        ref=_ref_from_dict(data["ref"]),
        fingerprint=data["fingerprint"],
        started_at=datetime.fromisoformat(data["started_at"]),
        status=AttemptStatus(data["status"]),
        error=data.get("error", ""),
    )
