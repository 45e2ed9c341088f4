"""Mapping from lidar identities to slots in the device table."""

from __future__ import annotations

import threading

from lidarfeed.comm import MAX_SOURCE_LIDAR, LidarProtoType


class IndexLookupError(LookupError):
    """No slot could be found or assigned for a lidar."""


class CacheIndex:
    """Assigns each lidar a stable slot index below MAX_SOURCE_LIDAR."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._map: dict[str, int] = {}
        self._used = [False] * MAX_SOURCE_LIDAR

    def generate_key(self, lidar_type: int, handle: int) -> str:
        """Key naming a lidar; only Livox lidars are known."""
        if lidar_type != LidarProtoType.LIVOX:
            raise IndexLookupError(
                f"cannot generate index key, unknown lidar type: {lidar_type}"
            )
        return f"livox_lidar_{handle}"

    def get_free_index(self, lidar_type: int, handle: int) -> int:
        """Return the lidar's slot, assigning the lowest free one if needed."""
        key = self.generate_key(lidar_type, handle)
        with self._lock:
            if key in self._map:
                return self._map[key]
            for index, used in enumerate(self._used):
                if not used:
                    self._used[index] = True
                    self._map[key] = index
                    return index
        raise IndexLookupError(f"no free index left for {key}")

    def get_index(self, lidar_type: int, handle: int) -> int:
        """Return the lidar's slot; it must already have one."""
        key = self.generate_key(lidar_type, handle)
        with self._lock:
            try:
                return self._map[key]
            except KeyError:
                raise IndexLookupError(
                    f"no index for lidar type {lidar_type}, handle {handle}"
                ) from None

    def lvx_get_index(self, lidar_type: int, handle: int) -> int:
        """Return the lidar's slot, assigning one if it has none."""
        return self.get_free_index(lidar_type, handle)

    def reset_index(self, lidar_type: int, handle: int) -> None:
        """Release the lidar's slot, if it has one."""
        key = self.generate_key(lidar_type, handle)
        with self._lock:
            index = self._map.pop(key, None)
            if index is not None:
                self._used[index] = False

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._map

    def __len__(self) -> int:
        with self._lock:
            return len(self._map)