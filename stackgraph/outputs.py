"""Stack outputs: the values exposed to whatever orchestration invokes a run."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from stackgraph.blueprint import OUTPUT_KUBECONFIG, Stack
from stackgraph.graph import resolve_refs
from stackgraph.models.resources import MaterializedOutput, NodeRef
from stackgraph.models.results import ExportedCredential
from stackgraph.secrets import MASK, Secret


def collect_outputs(
    stack: Stack,
    outputs: Mapping[NodeRef, MaterializedOutput],
    credential: ExportedCredential | None = None,
) -> dict[str, Any]:
    """Resolve the stack's exports against materialized outputs.

    Exports whose node was not materialized resolve to ``None``. The
    kubeconfig entry is a ``Secret`` when available, the placeholder string
    otherwise.
    """
    values: dict[str, Any] = {}
    for name, ref in stack.exports.items():
        try:
            values[name] = resolve_refs(ref, outputs)
        except KeyError:
            values[name] = None
    if credential is not None:
        values[OUTPUT_KUBECONFIG] = credential.value
    return values


def render_outputs(values: Mapping[str, Any], show_secrets: bool = False) -> dict[str, Any]:
    """JSON-ready view of *values*; secrets are masked unless *show_secrets*."""
    rendered: dict[str, Any] = {}
    for name, value in values.items():
        if isinstance(value, Secret):
            rendered[name] = value.reveal() if show_secrets else MASK
        else:
            rendered[name] = value
    return rendered


def secret_output_names(values: Mapping[str, Any]) -> list[str]:
    return sorted(name for name, value in values.items() if isinstance(value, Secret))
