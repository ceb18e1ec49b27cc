from __future__ import annotations

import logging
from collections import Counter
from typing import Iterator

from .models import ObjectRef, is_null

logger = logging.getLogger(__name__)


class CaptureSet:
    """Deduplicating map of captured objects: identifier -> container.

    Insertion order carries no meaning. Re-recording an identifier is a no-op,
    even when the second ref names a different container.
    """

    def __init__(self) -> None:
        self._objects: dict[str, str] = {}
        self._count = 0

    def record(self, ref: ObjectRef | None) -> bool:
        if ref is None or is_null(ref.store_identifier):
            return False

        sys_id = str(ref.store_identifier)
        if sys_id in self._objects:
            return False

        self._objects[sys_id] = ref.container_name
        self._count += 1
        logger.debug(f"Captured '{ref.container_name}' object with sys_id '{sys_id}'")
        return True

    def count(self) -> int:
        return self._count

    def containers(self) -> Counter[str]:
        return Counter(self._objects.values())

    def clear(self) -> None:
        self._objects = {}
        self._count = 0

    def __len__(self) -> int:
        return len(self._objects)

    def __contains__(self, item: object) -> bool:
        if isinstance(item, ObjectRef):
            return self._objects.get(item.store_identifier) == item.container_name
        return item in self._objects

    def __iter__(self) -> Iterator[ObjectRef]:
        # snapshot so a commit can iterate while callers inspect the set
        for sys_id, container in list(self._objects.items()):
            yield ObjectRef(store_identifier=sys_id, container_name=container)
