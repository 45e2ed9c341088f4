"""Livox lidar data handling: config parsing, packet decoding, frame publishing and buffering."""

__version__ = "0.1.0"

__all__ = [
    "cache_index",
    "comm",
    "config",
    "imu_queue",
    "pub_handler",
    "ring_queue",
]