"""
Content Merge Engine

Reconciles the local snapshot with a remote delta. Entities are matched by
``id`` within each array; the remote copy always wins and local-only
entities are kept. A remote entity with ``"deleted": true`` is a tombstone:
it removes the matching entity and is not stored itself.
"""

import time
from typing import Dict, List, Optional

from studypilot.schemas.sync import CONTENT_KEYS, Entity, SyncableContent

TOMBSTONE_FIELD = "deleted"


def current_time_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def is_tombstone(entity: Entity) -> bool:
    return entity.get(TOMBSTONE_FIELD) is True


def merge_entities(local: List[Entity], remote: List[Entity]) -> List[Entity]:
    """Merge two entity arrays by id, remote wins."""
    merged: Dict[object, Entity] = {entity["id"]: entity for entity in local}
    for entity in remote:
        if is_tombstone(entity):
            merged.pop(entity["id"], None)
        else:
            merged[entity["id"]] = entity
    return list(merged.values())


def merge_content(
    local: Optional[SyncableContent],
    remote: SyncableContent,
    *,
    now_ms: Optional[int] = None,
) -> SyncableContent:
    """
    Merge a remote delta into the local snapshot.

    With no local snapshot the remote content is returned as is (minus any
    tombstones). Otherwise every array is merged independently and
    lastSyncTimestamp is set to ``now_ms`` (defaults to the current time),
    never to the server's timestamp.
    """
    if local is None:
        if not any(is_tombstone(e) for key in CONTENT_KEYS for e in remote.entities(key)):
            return remote
        return remote.model_copy(update={
            key: [e for e in remote.entities(key) if not is_tombstone(e)]
            for key in CONTENT_KEYS
        })

    merged = {
        key: merge_entities(local.entities(key), remote.entities(key))
        for key in CONTENT_KEYS
    }
    return SyncableContent(
        **merged,
        last_sync_timestamp=now_ms if now_ms is not None else current_time_ms(),
    )
