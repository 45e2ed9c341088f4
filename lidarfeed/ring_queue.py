"""Fixed-capacity ring queue of point packets for one lidar."""

from __future__ import annotations

from lidarfeed.comm import PointPacket, StoragePacket

_MAX_POWER = 1 << 31


def is_power_of_2(size: int) -> bool:
    """True for positive powers of two."""
    return size != 0 and (size & (size - 1)) == 0


def roundup_power_of_2(size: int) -> int:
    """Smallest power of two not below size, capped at 2**31."""
    if size <= 1:
        return 1
    return min(1 << (size - 1).bit_length(), _MAX_POWER)


class LidarDataQueue:
    """Ring buffer whose capacity is a power of two.

    Pushing does not check for a full queue; callers test ``is_full`` first,
    otherwise the oldest slots are overwritten.
    """

    def __init__(self) -> None:
        self._storage: list[StoragePacket | None] | None = None
        self.rd_idx = 0
        self.wr_idx = 0
        self.size = 0
        self.mask = 0

    @property
    def allocated(self) -> bool:
        return self._storage is not None

    def allocate(self, size: int) -> int:
        """Create storage of at least ``size`` slots; return the real size."""
        if not is_power_of_2(size):
            size = roundup_power_of_2(size)
        self._storage = [None] * size
        self.rd_idx = 0
        self.wr_idx = 0
        self.size = size
        self.mask = size - 1
        return size

    def release(self) -> None:
        """Drop the storage and all queued packets."""
        self._storage = None
        self.rd_idx = 0
        self.wr_idx = 0
        self.size = 0
        self.mask = 0

    def reset(self) -> None:
        """Discard queued packets, keeping the storage."""
        self.rd_idx = 0
        self.wr_idx = 0

    def peek(self) -> StoragePacket:
        """Return a copy of the oldest packet without removing it."""
        if self.is_empty():
            raise IndexError("peek from an empty queue")
        slot = self._storage[self.rd_idx & self.mask]
        return StoragePacket(base_time=slot.base_time, points=list(slot.points))

    def pop(self) -> StoragePacket:
        """Remove and return the oldest packet."""
        packet = self.peek()
        self.rd_idx += 1
        return packet

    def push(self, packet: PointPacket, base_time: int) -> None:
        """Store a copy of ``packet``'s points with ``base_time``."""
        if self._storage is None:
            raise RuntimeError("queue is not allocated")
        self._storage[self.wr_idx & self.mask] = StoragePacket(
            base_time=base_time, points=list(packet.points)
        )
        self.wr_idx += 1

    def is_full(self) -> bool:
        return self.wr_idx - self.rd_idx > self.mask

    def is_empty(self) -> bool:
        return self.rd_idx == self.wr_idx

    def used_size(self) -> int:
        return self.wr_idx - self.rd_idx

    def unused_size(self) -> int:
        return self.size - self.used_size()

    def __len__(self) -> int:
        return self.used_size()