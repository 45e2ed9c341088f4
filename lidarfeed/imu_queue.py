"""Thread-safe FIFO of IMU samples."""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass


@dataclass(slots=True)
class ImuData:
    """One IMU sample: gyroscope in rad/s, accelerometer in g."""

    lidar_type: int
    handle: int
    time_stamp: int = 0
    gyro_x: float = 0.0
    gyro_y: float = 0.0
    gyro_z: float = 0.0
    acc_x: float = 0.0
    acc_y: float = 0.0
    acc_z: float = 0.0
    slot: int = 0


class LidarImuDataQueue:
    """Unbounded queue of IMU samples shared between threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: deque[ImuData] = deque()

    def push(self, imu_data: ImuData) -> None:
        """Append a copy of the sample; the slot field is not carried over."""
        sample = ImuData(
            lidar_type=imu_data.lidar_type,
            handle=imu_data.handle,
            time_stamp=imu_data.time_stamp,
            gyro_x=imu_data.gyro_x,
            gyro_y=imu_data.gyro_y,
            gyro_z=imu_data.gyro_z,
            acc_x=imu_data.acc_x,
            acc_y=imu_data.acc_y,
            acc_z=imu_data.acc_z,
        )
        with self._lock:
            self._items.append(sample)

    def pop(self) -> ImuData:
        """Remove and return the oldest sample; IndexError if empty."""
        with self._lock:
            if not self._items:
                raise IndexError("pop from an empty IMU queue")
            return self._items.popleft()

    def is_empty(self) -> bool:
        with self._lock:
            return not self._items

    def clear(self) -> None:
        with self._lock:
            self._items = deque()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)