"""Client-held mirror of the remote state tree and the delta-merge rule.

The remote status endpoint answers with three sections::

    {"actionChanges":   {"id": 17, "changes": {...}},
     "propertyChanges": {"id": 42, "changes": {...}},
     "time":            {"jday": 2458000.5, "utc": ..., "local": ..., ...}}

A full fetch returns every action/property; a delta fetch (made with the
last seen ids) returns only what changed since. Merging is pure: it never
mutates the mirror it is given.
"""

import copy
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from stelbridge.errors import MalformedDeltaError

_log = logging.getLogger(__name__)

FULL_STATE_ID = -2  # Sent as both ids to ask for the complete state
ACTIONS = "actionChanges"
PROPERTIES = "propertyChanges"
TIME = "time"


@dataclass(frozen=True)
class RemoteMirror:
    tree: dict[str, Any]
    action_id: int
    property_id: int

    @classmethod
    def from_full(cls, payload: Any) -> "RemoteMirror":
        """Build a mirror from a full-state response.

        Raises:
            MalformedDeltaError: Payload is not an object or lacks either section id.
        """
        if not isinstance(payload, dict) or not payload:
            raise MalformedDeltaError("full state is not a JSON object")
        action_id = _section_id(payload, ACTIONS)
        property_id = _section_id(payload, PROPERTIES)
        if action_id is None or property_id is None:
            raise MalformedDeltaError("full state lacks actionChanges/propertyChanges ids")
        return cls(tree=copy.deepcopy(payload), action_id=action_id, property_id=property_id)

    @property
    def properties(self) -> dict[str, Any]:
        """Cached property values, keyed by property id."""
        section = self.tree.get(PROPERTIES) or {}
        changes = section.get("changes")
        return changes if isinstance(changes, dict) else {}

    @property
    def actions(self) -> dict[str, Any]:
        section = self.tree.get(ACTIONS) or {}
        changes = section.get("changes")
        return changes if isinstance(changes, dict) else {}

    @property
    def time(self) -> dict[str, Any] | None:
        section = self.tree.get(TIME)
        return section if isinstance(section, dict) else None


def _section_id(tree: Mapping[str, Any], name: str) -> int | None:
    """The `id` of a section, None when the section or its id is absent."""
    section = tree.get(name)
    if section is None:
        return None
    if not isinstance(section, dict):
        raise MalformedDeltaError(f"{name} is not an object")
    change_id = section.get("id")
    if change_id is None:
        return None
    if isinstance(change_id, bool) or not isinstance(change_id, int):
        raise MalformedDeltaError(f"{name}.id is not an integer: {change_id!r}")
    return change_id


def merge_tree(base: Mapping[str, Any], delta: Mapping[str, Any]) -> dict[str, Any]:
    """Overlay `delta` on `base`. Nested objects merge key by key; anything else is replaced."""
    merged = dict(base)
    for key, value in delta.items():
        current = merged.get(key)
        if isinstance(value, dict) and isinstance(current, dict):
            merged[key] = merge_tree(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def is_stale(mirror: RemoteMirror, delta: Mapping[str, Any]) -> bool:
    """True when the delta carries a change id older than the mirror's."""
    action_id = _section_id(delta, ACTIONS)
    property_id = _section_id(delta, PROPERTIES)
    return (action_id is not None and action_id < mirror.action_id) or (
        property_id is not None and property_id < mirror.property_id
    )


def apply_delta(mirror: RemoteMirror, delta: Any) -> RemoteMirror:
    """Merge a delta response into a mirror.

    Args:
        mirror: Current mirror (left untouched).
        delta: Decoded JSON body of a delta status request.

    Returns:
        A new mirror whose ids are taken from the merged sections (previous
        ids where a section carries none), or `mirror` itself when the delta
        is stale.

    Raises:
        MalformedDeltaError: Delta is empty, not an object, or has a
            non-object section / non-integer id.
    """
    if not isinstance(delta, dict) or not delta:
        raise MalformedDeltaError("delta is empty or not a JSON object")
    if is_stale(mirror, delta):
        _log.debug(
            "Ignoring stale delta (mirror ids %d/%d)", mirror.action_id, mirror.property_id
        )
        return mirror

    tree = merge_tree(mirror.tree, delta)
    action_id = _section_id(tree, ACTIONS)
    property_id = _section_id(tree, PROPERTIES)
    return RemoteMirror(
        tree=tree,
        action_id=mirror.action_id if action_id is None else action_id,
        property_id=mirror.property_id if property_id is None else property_id,
    )
