"""Discovery and substitution of deferred references in property bags.

Property bags are plain nested data (dicts, lists, tuples, scalars) that may
contain two kinds of placeholders:

    Ref     -- another node's output attribute; an implicit graph edge.
    SubRef  -- a named sub-resource in the same node's nested configuration.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any

from stackgraph.models.resources import MaterializedOutput, NodeRef, Ref, SubRef


def iter_refs(value: Any) -> Iterator[Ref]:
    """Yield every Ref found anywhere in *value*."""
    if isinstance(value, Ref):
        yield value
    elif isinstance(value, Mapping):
        for item in value.values():
            yield from iter_refs(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from iter_refs(item)


def iter_subrefs(value: Any) -> Iterator[SubRef]:
    """Yield every SubRef found anywhere in *value*."""
    if isinstance(value, SubRef):
        yield value
    elif isinstance(value, Mapping):
        for item in value.values():
            yield from iter_subrefs(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from iter_subrefs(item)


def declared_subresources(value: Any) -> dict[str, set[str]]:
    """Collect named sub-resource collections declared in *value*.

    A collection is any key whose value is a non-empty list of mappings that
    all carry a ``name`` (``frontendPorts``, ``httpListeners``, ...).
    """
    found: dict[str, set[str]] = {}

    def _walk(item: Any) -> None:
        if isinstance(item, Mapping):
            for key, child in item.items():
                if (
                    isinstance(child, list)
                    and child
                    and all(isinstance(entry, Mapping) and "name" in entry for entry in child)
                ):
                    found.setdefault(str(key), set()).update(str(entry["name"]) for entry in child)
                _walk(child)
        elif isinstance(item, (list, tuple)):
            for child in item:
                _walk(child)

    _walk(value)
    return found


def resolve_refs(value: Any, outputs: Mapping[NodeRef, MaterializedOutput]) -> Any:
    """Return a copy of *value* with every Ref replaced by its resolved value.

    Raises KeyError when a referenced node has no output or lacks the
    attribute; the materializer only calls this after all dependencies have
    produced outputs.
    """
    if isinstance(value, Ref):
        resolved = outputs[value.target].get(value.attribute)
        return value.transform(resolved) if value.transform is not None else resolved
    if isinstance(value, Mapping):
        return {key: resolve_refs(item, outputs) for key, item in value.items()}
    if isinstance(value, list):
        return [resolve_refs(item, outputs) for item in value]
    if isinstance(value, tuple):
        return tuple(resolve_refs(item, outputs) for item in value)
    return value


def resolve_subrefs(value: Any, owner_id: str) -> Any:
    """Return a copy of *value* with every SubRef replaced by an id object."""
    if isinstance(value, SubRef):
        return {"id": f"{owner_id}/{value.collection}/{value.name}"}
    if isinstance(value, Mapping):
        return {key: resolve_subrefs(item, owner_id) for key, item in value.items()}
    if isinstance(value, list):
        return [resolve_subrefs(item, owner_id) for item in value]
    if isinstance(value, tuple):
        return tuple(resolve_subrefs(item, owner_id) for item in value)
    return value
