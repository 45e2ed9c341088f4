"""Decoding of raw lidar packets into points and periodic frame publishing."""

from __future__ import annotations

import dataclasses
import enum
import logging
import math
import struct
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import ClassVar

from lidarfeed.comm import (
    LINE_NUMBER_DEFAULT,
    LINE_NUMBER_HAP,
    LINE_NUMBER_MID360,
    NS_PER_SECOND,
    NS_TOLERANT_FRAME_TIME_DEVIATION,
    PI,
    RATIO_OF_MS_TO_NS,
    LidarExtParameter,
    LidarProtoType,
    PointFrame,
    PointPacket,
    PointXyzlt,
    RawPacket,
    TimestampType,
)
from lidarfeed.imu_queue import ImuData

log = logging.getLogger(__name__)

DEVICE_TYPE_MID360 = 9
DEVICE_TYPE_INDUSTRIAL_HAP = 10

_UINT64_MASK = 0xFFFFFFFFFFFFFFFF
_IMU_FORMAT = struct.Struct("<6f")


class PointDataType(enum.IntEnum):
    """Kind of payload carried by an Ethernet packet."""

    IMU = 0
    CARTESIAN_HIGH = 1
    CARTESIAN_LOW = 2
    SPHERICAL = 3


class _RawPoint:
    __slots__ = ()
    FORMAT: ClassVar[struct.Struct]

    def pack(self) -> bytes:
        """Wire form of the point."""
        return self.FORMAT.pack(*dataclasses.astuple(self))

    @classmethod
    def unpack_many(cls, data: bytes, count: int) -> list:
        """Decode ``count`` consecutive points from ``data``."""
        needed = count * cls.FORMAT.size
        if len(data) < needed:
            raise ValueError(
                f"{cls.__name__}: need {needed} bytes for {count} points, got {len(data)}"
            )
        return [cls(*values) for values in cls.FORMAT.iter_unpack(bytes(data[:needed]))]


@dataclass(frozen=True, slots=True)
class CartesianHighPoint(_RawPoint):
    """Cartesian point in millimetres."""

    x: int
    y: int
    z: int
    reflectivity: int = 0
    tag: int = 0
    FORMAT: ClassVar[struct.Struct] = struct.Struct("<iiiBB")


@dataclass(frozen=True, slots=True)
class CartesianLowPoint(_RawPoint):
    """Cartesian point in centimetres."""

    x: int
    y: int
    z: int
    reflectivity: int = 0
    tag: int = 0
    FORMAT: ClassVar[struct.Struct] = struct.Struct("<hhhBB")


@dataclass(frozen=True, slots=True)
class SphericalPoint(_RawPoint):
    """Spherical point: depth in mm, angles in hundredths of a degree."""

    depth: int
    theta: int
    phi: int
    reflectivity: int = 0
    tag: int = 0
    FORMAT: ClassVar[struct.Struct] = struct.Struct("<IHHBB")


@dataclass(slots=True)
class EthernetPacket:
    """One packet as delivered by a lidar.

    ``time_interval`` is in units of 0.1 microseconds and ``timestamp`` is
    the raw 8-byte stamp; ``data`` is the payload that follows the header.
    """

    data_type: int
    time_type: int = TimestampType.NO_SYNC
    dot_num: int = 0
    time_interval: int = 0
    timestamp: bytes = bytes(8)
    data: bytes = b""


def eth_packet_timestamp(timestamp_type: int, stamp: bytes) -> int:
    """Packet time in ns: the stamp itself when synchronised, else the wall clock."""
    if timestamp_type in (TimestampType.GPTP_OR_PTP, TimestampType.GPS):
        raw = bytes(stamp[:8]).ljust(8, b"\0")
        return int.from_bytes(raw, "little", signed=False) & _UINT64_MASK
    return time.time_ns()


_DEFAULT_ROTATION = ((1.0, 0.0, 0.0), (0.0, 1.0, 1.0), (0.0, 0.0, 1.0))


class LidarPubHandler:
    """Accumulates decoded, extrinsically compensated points of one lidar."""

    _protocol_warned = False

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._points: list[PointXyzlt] = []
        self._translation: tuple[float, float, float] = (0.0, 0.0, 0.0)
        self._rotation: tuple[tuple[float, float, float], ...] = _DEFAULT_ROTATION
        self._ext_set = False

    @property
    def rotation(self) -> tuple[tuple[float, float, float], ...]:
        return self._rotation

    @property
    def translation(self) -> tuple[float, float, float]:
        return self._translation

    def point_cloud_process(self, packet: RawPacket) -> None:
        """Decode a raw packet and append its points."""
        if packet.lidar_type != LidarProtoType.LIVOX:
            if not LidarPubHandler._protocol_warned:
                log.error("unsupported protocol type: %d", packet.lidar_type)
                LidarPubHandler._protocol_warned = True
            return
        if packet.data_type == PointDataType.CARTESIAN_HIGH:
            raw = CartesianHighPoint.unpack_many(packet.raw_data, packet.point_num)
            self._process_cartesian(raw, 1000.0, packet)
        elif packet.data_type == PointDataType.CARTESIAN_LOW:
            raw = CartesianLowPoint.unpack_many(packet.raw_data, packet.point_num)
            self._process_cartesian(raw, 100.0, packet)
        elif packet.data_type == PointDataType.SPHERICAL:
            raw = SphericalPoint.unpack_many(packet.raw_data, packet.point_num)
            self._process_spherical(raw, packet)
        else:
            log.warning("unknown data type: %d", packet.data_type)

    def set_ext_param(self, param: LidarExtParameter) -> None:
        """Set the mounting transform; only the first call has an effect."""
        if self._ext_set:
            return
        ext = param.param
        self._translation = (float(ext.x), float(ext.y), float(ext.z))
        roll = ext.roll * PI / 180.0
        pitch = ext.pitch * PI / 180.0
        yaw = ext.yaw * PI / 180.0
        cr, cp, cy = math.cos(roll), math.cos(pitch), math.cos(yaw)
        sr, sp, sy = math.sin(roll), math.sin(pitch), math.sin(yaw)
        self._rotation = (
            (cp * cy, sr * sp * cy - cr * sy, cr * sp * cy + sr * sy),
            (cp * sy, sr * sp * sy + cr * cy, cr * sp * sy - sr * cy),
            (-sp, sr * cp, cr * cp),
        )
        self._ext_set = True

    def take_point_clouds(self) -> list[PointXyzlt]:
        """Return all accumulated points and start afresh."""
        with self._lock:
            points, self._points = self._points, []
        return points

    def recent_timestamp(self) -> int:
        """Offset time of the newest point, or 0."""
        with self._lock:
            return self._points[-1].offset_time if self._points else 0

    def base_time(self) -> int:
        """Offset time of the oldest point, or 0."""
        with self._lock:
            return self._points[0].offset_time if self._points else 0

    def point_clouds_size(self) -> int:
        with self._lock:
            return len(self._points)

    def _rotate(self, x: float, y: float, z: float) -> tuple[float, float, float]:
        return tuple(r[0] * x + r[1] * y + r[2] * z for r in self._rotation)

    @staticmethod
    def _make_point(x, y, z, raw, index: int, packet: RawPacket) -> PointXyzlt:
        return PointXyzlt(
            x=x,
            y=y,
            z=z,
            intensity=float(raw.reflectivity),
            tag=raw.tag,
            line=index % packet.line_num,
            offset_time=packet.time_stamp + index * packet.point_interval,
        )

    def _process_cartesian(self, raw_points, scale: float, packet: RawPacket) -> None:
        decoded = []
        for index, raw in enumerate(raw_points):
            if packet.extrinsic_enable:
                x, y, z = raw.x / scale, raw.y / scale, raw.z / scale
            else:
                rotated = self._rotate(raw.x, raw.y, raw.z)
                x, y, z = (
                    (value + offset) / scale
                    for value, offset in zip(rotated, self._translation)
                )
            decoded.append(self._make_point(x, y, z, raw, index, packet))
        with self._lock:
            self._points.extend(decoded)

    def _process_spherical(self, raw_points, packet: RawPacket) -> None:
        decoded = []
        for index, raw in enumerate(raw_points):
            radius = raw.depth / 1000.0
            theta = raw.theta / 100.0 / 180 * PI
            phi = raw.phi / 100.0 / 180 * PI
            src = (
                radius * math.sin(theta) * math.cos(phi),
                radius * math.sin(theta) * math.sin(phi),
                radius * math.cos(theta),
            )
            if packet.extrinsic_enable:
                x, y, z = src
            else:
                rotated = self._rotate(*src)
                x, y, z = (
                    value + offset / 1000.0
                    for value, offset in zip(rotated, self._translation)
                )
            decoded.append(self._make_point(x, y, z, raw, index, packet))
        with self._lock:
            self._points.extend(decoded)


PointCloudsCallback = Callable[[PointFrame], None]
ImuDataCallback = Callable[[ImuData], None]


def _lidar_id(lidar_type: int, handle: int) -> int:
    return handle if lidar_type == LidarProtoType.LIVOX else 0


class PubHandler:
    """Queues raw packets, decodes them per lidar and publishes frames."""

    def __init__(self, clock: Callable[[], int] = time.monotonic_ns) -> None:
        self._clock = clock
        self._cond = threading.Condition()
        self._queue: deque[RawPacket] = deque()
        self._quit = threading.Event()
        self._thread: threading.Thread | None = None

        self._points_callback: PointCloudsCallback | None = None
        self._imu_callback: ImuDataCallback | None = None

        self.publish_interval = 100_000_000
        self.publish_interval_tolerance = 100_000_000
        self.publish_interval_ms = 100
        self._last_pub_time: int | None = None

        self._handlers: dict[int, LidarPubHandler] = {}
        self._extrinsics: dict[int, LidarExtParameter] = {}
        self._timestamp_sync = False

    @property
    def is_timestamp_sync(self) -> bool:
        return self._timestamp_sync

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def set_point_cloud_config(self, publish_freq: float) -> None:
        """Derive the publishing period from a frequency in Hz."""
        if publish_freq <= 0:
            raise ValueError(f"publish frequency must be positive, got {publish_freq}")
        self.publish_interval = int((NS_PER_SECOND / (publish_freq * 10)) * 10)
        self.publish_interval_tolerance = (
            self.publish_interval - NS_TOLERANT_FRAME_TIME_DEVIATION
        )
        self.publish_interval_ms = self.publish_interval // RATIO_OF_MS_TO_NS

    def set_point_clouds_callback(self, callback: PointCloudsCallback | None) -> None:
        self._points_callback = callback

    def set_imu_data_callback(self, callback: ImuDataCallback | None) -> None:
        self._imu_callback = callback

    def add_lidar_ext_param(self, param: LidarExtParameter) -> None:
        with self._cond:
            self._extrinsics[_lidar_id(param.lidar_type, param.handle)] = param

    def clear_lidar_ext_params(self) -> None:
        with self._cond:
            self._extrinsics.clear()

    def on_ethernet_packet(self, handle: int, dev_type: int, packet: EthernetPacket) -> None:
        """Accept one packet from a lidar: IMU data goes straight out, points are queued."""
        self._timestamp_sync = packet.time_type != TimestampType.NO_SYNC

        if packet.data_type == PointDataType.IMU:
            callback = self._imu_callback
            if callback is not None:
                try:
                    gx, gy, gz, ax, ay, az = _IMU_FORMAT.unpack_from(bytes(packet.data))
                except struct.error as exc:
                    raise ValueError("IMU packet too short") from exc
                callback(
                    ImuData(
                        lidar_type=int(LidarProtoType.LIVOX),
                        handle=handle,
                        time_stamp=eth_packet_timestamp(packet.time_type, packet.timestamp),
                        gyro_x=gx,
                        gyro_y=gy,
                        gyro_z=gz,
                        acc_x=ax,
                        acc_y=ay,
                        acc_z=az,
                    )
                )
            return

        if packet.dot_num == 0:
            raise ValueError("point packet carries no points")
        if dev_type == DEVICE_TYPE_INDUSTRIAL_HAP:
            line_num = LINE_NUMBER_HAP
        elif dev_type == DEVICE_TYPE_MID360:
            line_num = LINE_NUMBER_MID360
        else:
            line_num = LINE_NUMBER_DEFAULT
        raw = RawPacket(
            lidar_type=int(LidarProtoType.LIVOX),
            handle=handle,
            extrinsic_enable=False,
            point_num=packet.dot_num,
            data_type=packet.data_type,
            line_num=line_num,
            time_stamp=eth_packet_timestamp(packet.time_type, packet.timestamp),
            point_interval=packet.time_interval * 100 // packet.dot_num,
            raw_data=bytes(packet.data),
        )
        with self._cond:
            self._queue.append(raw)
            self._cond.notify()

    def process_next(self, timeout: float | None = None) -> bool:
        """Decode one queued packet and publish if due; False if none arrived."""
        with self._cond:
            self._cond.wait_for(lambda: self._queue or self._quit.is_set(), timeout)
            if not self._queue:
                return False
            raw = self._queue.popleft()
            lidar_id = _lidar_id(raw.lidar_type, raw.handle)
            extrinsic = self._extrinsics.get(lidar_id)

        handler = self._handlers.setdefault(lidar_id, LidarPubHandler())
        if extrinsic is not None:
            handler.set_ext_param(extrinsic)
        handler.point_cloud_process(raw)
        self._check_timer(lidar_id)
        return True

    def start(self) -> None:
        """Run packet processing on a background thread."""
        if self._quit.is_set():
            raise RuntimeError("handler has been closed")
        if self.running:
            return
        self._thread = threading.Thread(target=self._run, name="pub-handler", daemon=True)
        self._thread.start()

    def request_exit(self) -> None:
        self._quit.set()
        with self._cond:
            self._cond.notify_all()

    def close(self) -> None:
        """Stop the background thread and wait for it."""
        self.request_exit()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    def __enter__(self) -> PubHandler:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _run(self) -> None:
        while not self._quit.is_set():
            try:
                self.process_next(0.5)
            except Exception:
                log.exception("failed to process lidar packet")

    def _publish(self, frame: PointFrame) -> None:
        callback = self._points_callback
        if callback is not None:
            callback(frame)

    def _check_timer(self, lidar_id: int) -> None:
        if self._timestamp_sync:
            handler = self._handlers[lidar_id]
            recent = handler.recent_timestamp()
            recent_ms = recent // RATIO_OF_MS_TO_NS
            if recent_ms == 0 or recent_ms % self.publish_interval_ms != 0:
                return
            base_time = handler.base_time()
            if recent - base_time < self.publish_interval_tolerance:
                return
            points = handler.take_point_clouds()
            if not points:
                return
            frame = PointFrame()
            frame.add(
                base_time,
                PointPacket(handle=lidar_id, lidar_type=int(LidarProtoType.LIVOX), points=points),
            )
            self._publish(frame)
            return

        now = self._clock()
        if self._last_pub_time is None:
            self._last_pub_time = now
            return
        if now - self._last_pub_time < self.publish_interval:
            return
        self._last_pub_time += self.publish_interval
        frame = PointFrame()
        for handle in sorted(self._handlers):
            handler = self._handlers[handle]
            base_time = handler.base_time()
            points = handler.take_point_clouds()
            if not points:
                continue
            frame.add(
                base_time,
                PointPacket(handle=handle, lidar_type=int(LidarProtoType.LIVOX), points=points),
            )
        self._publish(frame)