"""Shared constants, enumerations and record types for the lidar feed."""

from __future__ import annotations

import enum
import os
import socket
import struct
from dataclasses import dataclass, field

MAX_SOURCE_LIDAR = 32

MAX_POINT_PER_ETH_PACKET = 100
MIN_ETH_PACKET_QUEUE_SIZE = 32
MAX_ETH_PACKET_QUEUE_SIZE = 131072
IMU_ETH_PACKET_QUEUE_SIZE = 256

ETH_PACKET_MAX_LENGTH = 1500
ETH_PACKET_HEADER_LENGTH = 18
CARTESIAN_POINT_SIZE = 13
SPHERICAL_POINT_SIZE = 9

ROS_TIME_MAX = 4294967296000000000
PACKET_TIME_GAP = 1000000
MAX_PACKET_TIME_GAP = 1700000
DEVICE_DISCONNECT_THRESHOLD = 1000000000
NS_PER_SECOND = 1000000000
NS_TOLERANT_FRAME_TIME_DEVIATION = 1000000
RATIO_OF_MS_TO_NS = 1000000

PATH_STR_MIN_SIZE = 4
PATH_STR_MAX_SIZE = 256
BD_CODE_SIZE = 15

POINT_XYZR_SIZE = 16
POINT_XYZRTR_SIZE = 18

PI = 3.14159265358979323846

MAX_BUFFER_SIZE = 0x8000

LINE_NUMBER_DEFAULT = 1
LINE_NUMBER_MID360 = 4
LINE_NUMBER_HAP = 6

MAX_PRODUCT_TYPE = 10
DEVICE_TYPE_LIDAR_MID70 = 6


class LidarProtoType(enum.IntEnum):
    """Protocol family a lidar speaks."""

    INDUSTRY = 1
    VEHICLE = 2
    DIRECT = 4
    LIVOX = 8


class TimestampType(enum.IntEnum):
    """Timestamp synchronisation mode of a packet."""

    NO_SYNC = 0
    GPTP_OR_PTP = 1
    GPS = 2


class ConnectState(enum.IntEnum):
    """Connection state of a lidar device."""

    OFF = 0
    ON = 1
    CONFIG = 2
    SAMPLING = 3


class DataSource(enum.IntEnum):
    """Where lidar data comes from."""

    RAW_LIDAR = 0
    RAW_HUB = 1
    LVX_FILE = 2
    UNDEF = 3


class ConfigBit(enum.IntFlag):
    """Pending configuration items of a lidar."""

    DATA_TYPE = 1 << 0
    SCAN_PATTERN = 1 << 1
    BLIND_SPOT = 1 << 2
    DUAL_EMIT = 1 << 3


@dataclass(frozen=True, slots=True)
class PointXyzlt:
    """A single point with intensity, tag, line and timestamp."""

    x: float
    y: float
    z: float
    intensity: float
    tag: int = 0
    line: int = 0
    offset_time: int = 0


@dataclass(slots=True)
class PointPacket:
    """Points produced by one lidar for one publishing period."""

    handle: int
    lidar_type: int
    points: list[PointXyzlt] = field(default_factory=list)

    @property
    def points_num(self) -> int:
        return len(self.points)


@dataclass(slots=True)
class PointFrame:
    """Point packets of several lidars, each with its base time."""

    base_time: list[int] = field(default_factory=list)
    lidar_point: list[PointPacket] = field(default_factory=list)

    @property
    def lidar_num(self) -> int:
        return len(self.lidar_point)

    def add(self, base_time: int, packet: PointPacket) -> None:
        """Append one lidar's packet; at most MAX_SOURCE_LIDAR fit."""
        if len(self.lidar_point) >= MAX_SOURCE_LIDAR:
            raise ValueError(f"a frame holds at most {MAX_SOURCE_LIDAR} lidars")
        self.base_time.append(base_time)
        self.lidar_point.append(packet)

    def clear(self) -> None:
        self.base_time.clear()
        self.lidar_point.clear()

    def __iter__(self):
        return iter(zip(self.base_time, self.lidar_point))


@dataclass(slots=True)
class StoragePacket:
    """A point packet held in a lidar's data queue."""

    lidar_type: int = 0
    handle: int = 0
    base_time: int = 0
    points: list[PointXyzlt] = field(default_factory=list)

    @property
    def points_num(self) -> int:
        return len(self.points)


@dataclass(slots=True)
class RawPacket:
    """Undecoded point data received from a lidar."""

    lidar_type: int
    handle: int
    extrinsic_enable: bool = False
    point_num: int = 0
    data_type: int = 0
    line_num: int = LINE_NUMBER_DEFAULT
    time_stamp: int = 0
    point_interval: int = 0
    raw_data: bytes = b""


@dataclass(slots=True)
class ExtParameter:
    """Mounting attitude: angles in degrees, translation in millimetres."""

    roll: float = 0.0
    pitch: float = 0.0
    yaw: float = 0.0
    x: int = 0
    y: int = 0
    z: int = 0


@dataclass(slots=True)
class LidarExtParameter:
    """Extrinsic parameters bound to one lidar."""

    lidar_type: int
    handle: int
    param: ExtParameter = field(default_factory=ExtParameter)


@dataclass(slots=True)
class UserLivoxLidarConfig:
    """Per-lidar settings from the user's configuration file; -1 means unset."""

    handle: int
    pcl_data_type: int = -1
    pattern_mode: int = -1
    blind_spot_set: int = -1
    dual_emit_en: int = -1
    extrinsic_param: ExtParameter = field(default_factory=ExtParameter)
    set_bits: int = 0
    get_bits: int = 0


@dataclass(slots=True)
class LidarSummaryInfo:
    """Summary section of the configuration file."""

    lidar_type: int = 0


def is_file_path_valid(path: str | bytes | os.PathLike) -> bool:
    """Return True if the path length lies strictly between the limits."""
    length = len(os.fsencode(path))
    return PATH_STR_MIN_SIZE < length < PATH_STR_MAX_SIZE


def calculate_packet_queue_size(publish_freq: float) -> int:
    """Queue depth needed to buffer one second of packets."""
    if publish_freq > 10.0:
        return int(publish_freq) + 1
    return 10


def ip_num_to_string(ip_num: int) -> str:
    """Dotted form of an address held in network order in a little-endian word."""
    try:
        raw = struct.pack("<I", ip_num)
    except struct.error as exc:
        raise ValueError(f"not a 32-bit address: {ip_num!r}") from exc
    return socket.inet_ntoa(raw)


def ip_string_to_num(ip_string: str) -> int:
    """Inverse of ip_num_to_string."""
    try:
        raw = socket.inet_aton(ip_string)
    except OSError as exc:
        raise ValueError(f"invalid IPv4 address: {ip_string!r}") from exc
    return struct.unpack("<I", raw)[0]


def replace_period_by_underline(text: str) -> str:
    """Replace every '.' by '_'."""
    return text.replace(".", "_")