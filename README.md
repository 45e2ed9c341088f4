# lidarfeed

`lidarfeed` is a small library for Livox lidar data. It reads the JSON
configuration file, decodes the raw packets that a lidar sends into points in
metres, applies each lidar's mounting transform, and groups the points into
frames at a fixed publish rate. It also has the buffers that hold point
packets and IMU samples until a consumer takes them. It uses only the standard
library.

## Modules

- `lidarfeed.comm` holds the shared constants (`MAX_SOURCE_LIDAR`,
  `NS_PER_SECOND`, ...), the enumerations (`LidarProtoType`, `TimestampType`,
  `ConnectState`, `DataSource`, `ConfigBit`) and the record types
  (`PointXyzlt`, `PointPacket`, `PointFrame`, `StoragePacket`, `RawPacket`,
  `ExtParameter`, `LidarExtParameter`, `UserLivoxLidarConfig`,
  `LidarSummaryInfo`). It also has these helpers:
  - `is_file_path_valid`: true when the path is between 5 and 255 bytes long.
  - `calculate_packet_queue_size`: 10 up to 10 Hz, otherwise `int(freq) + 1`.
  - `ip_num_to_string` and `ip_string_to_num`: turn a lidar handle into a
    dotted IPv4 address and back.
  - `replace_period_by_underline`.
- `lidarfeed.ring_queue` has `LidarDataQueue`, a ring buffer of point packets
  whose capacity is a power of two. Use `allocate`, `push`, `peek`, `pop`,
  `is_full`, `is_empty`, `used_size`, `unused_size`, `reset` and `release`.
  `push` does not check whether the queue is full, so test `is_full` first.
  `peek` and `pop` on an empty queue raise `IndexError`. The module also has
  `is_power_of_2` and `roundup_power_of_2`.
- `lidarfeed.imu_queue` has `ImuData` and `LidarImuDataQueue`, a thread-safe
  FIFO with `push`, `pop` (raises `IndexError` when empty), `is_empty` and
  `clear`.
- `lidarfeed.cache_index` has `CacheIndex`, which gives each Livox lidar a
  stable slot below `MAX_SOURCE_LIDAR`. Its methods are `get_free_index`,
  `get_index`, `lvx_get_index`, `reset_index` and `generate_key`. It raises
  `IndexLookupError` for an unknown lidar type, for a handle that has no slot,
  and when no slot is free.
- `lidarfeed.config` has `parse_summary_info`, `LivoxLidarConfigParser.parse`
  and `parse_extrinsics`. A file that is missing, malformed or incomplete
  raises `ConfigError`.
- `lidarfeed.pub_handler` decodes and publishes packets:
  - `EthernetPacket` is one packet as the lidar delivers it.
  - `CartesianHighPoint`, `CartesianLowPoint` and `SphericalPoint` are the
    raw point layouts. Each has `pack` and `unpack_many`.
  - `LidarPubHandler` decodes the packets of one lidar and applies its
    extrinsics.
  - `PubHandler` queues packets from any number of lidars. It hands IMU
    samples straight to a callback and sends a `PointFrame` to the
    point-cloud callback once per publish period. Packets can be processed
    one at a time with `process_next`, or on a background thread with
    `start` and `close` (it is also a context manager).
  - `eth_packet_timestamp` gives a packet's time in nanoseconds.

## Examples

Queue sizing:

```python
from lidarfeed.comm import calculate_packet_queue_size
from lidarfeed.ring_queue import roundup_power_of_2

size = calculate_packet_queue_size(20.0)   # 21 packets
capacity = roundup_power_of_2(size)        # 32 slots
```

Handles and slots:

```python
from lidarfeed.cache_index import CacheIndex
from lidarfeed.comm import LidarProtoType, ip_num_to_string, ip_string_to_num

handle = ip_string_to_num("192.168.1.12")
assert ip_num_to_string(handle) == "192.168.1.12"

index = CacheIndex()
slot = index.get_free_index(LidarProtoType.LIVOX, handle)
assert index.get_index(LidarProtoType.LIVOX, handle) == slot
```

Configuration file:

```json
{
  "lidar_summary_info": {"lidar_type": 8},
  "lidar_configs": [
    {
      "ip": "192.168.1.12",
      "pcl_data_type": 1,
      "pattern_mode": 0,
      "extrinsic_parameter": {"roll": 0.0, "pitch": 0.0, "yaw": 0.0, "x": 0, "y": 0, "z": 0}
    }
  ]
}
```

```python
from lidarfeed.config import LivoxLidarConfigParser, parse_summary_info

summary = parse_summary_info("lidar.json")            # summary.lidar_type == 8
configs = LivoxLidarConfigParser("lidar.json").parse()
```

Any field left out of an entry keeps `-1`, which means "not set". A missing
extrinsic value is zero.

Decoding and publishing. The clock argument lets you control when frames are
due:

```python
from lidarfeed.pub_handler import (
    DEVICE_TYPE_MID360, CartesianHighPoint, EthernetPacket, PointDataType, PubHandler,
)

frames = []
ticks = iter([0, 200_000_000])
handler = PubHandler(clock=lambda: next(ticks))
handler.set_point_cloud_config(10.0)        # 100 ms period
handler.set_point_clouds_callback(frames.append)

payload = CartesianHighPoint(1000, 0, 0, reflectivity=10).pack()
packet = EthernetPacket(data_type=PointDataType.CARTESIAN_HIGH, dot_num=1,
                        time_interval=10, data=payload)

handler.on_ethernet_packet(handle, DEVICE_TYPE_MID360, packet)
handler.process_next(timeout=0)             # starts the publish clock
handler.on_ethernet_packet(handle, DEVICE_TYPE_MID360, packet)
handler.process_next(timeout=0)             # period elapsed: one frame

assert frames[0].lidar_num == 1 and frames[0].lidar_point[0].points_num == 2
```

If a packet's timestamp is synchronised (PTP or GPS), a frame is published
when the newest point reaches a multiple of the publish period. In that case
the clock is not used.

## What the package does not do

- It does not talk to lidars over the network. The caller has to receive
  packets and pass them to `PubHandler.on_ethernet_packet`.
- It sends no configuration commands (work mode, scan pattern, attitude) to a
  device.
- It has no command-line program and no event loop that forwards frames to
  another process. The caller receives frames through the point-cloud
  callback and decides where they go.

## Running the tests

Install the `test` extra, then run `pytest` from the project root.