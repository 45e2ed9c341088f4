import pytest

from lidarfeed.comm import LidarProtoType, PointPacket, PointXyzlt
from lidarfeed.ring_queue import LidarDataQueue, is_power_of_2, roundup_power_of_2


def _packet(value, count=1):
    points = [PointXyzlt(value, value, value, value, offset_time=i) for i in range(count)]
    return PointPacket(handle=1, lidar_type=LidarProtoType.LIVOX, points=points)


@pytest.mark.parametrize("size", [1, 2, 4, 32, 1 << 20])
def test_is_power_of_2_true(size):
    assert is_power_of_2(size)


@pytest.mark.parametrize("size", [0, 3, 6, 10, 33])
def test_is_power_of_2_false(size):
    assert not is_power_of_2(size)


@pytest.mark.parametrize("size", [2, 3, 5, 10, 11, 100, 1000])
def test_roundup_invariants(size):
    result = roundup_power_of_2(size)
    assert is_power_of_2(result)
    assert result >= size
    assert result // 2 < size


def test_roundup_small_and_capped():
    assert roundup_power_of_2(0) == 1
    assert roundup_power_of_2(1) == 1
    assert roundup_power_of_2((1 << 31) + 1) == 1 << 31


def test_allocate_rounds_up():
    queue = LidarDataQueue()
    assert queue.allocate(10) == roundup_power_of_2(10)
    assert queue.size == roundup_power_of_2(10)
    assert queue.mask == queue.size - 1
    assert queue.allocated
    assert queue.is_empty()


def test_fifo_order_and_copy():
    queue = LidarDataQueue()
    queue.allocate(4)
    for i in range(3):
        queue.push(_packet(float(i), count=i + 1), base_time=i * 100)
    popped = [queue.pop() for _ in range(3)]
    assert [p.base_time for p in popped] == [0, 100, 200]
    assert [p.points_num for p in popped] == [1, 2, 3]
    assert popped[2].points[0].x == 2.0
    assert queue.is_empty()


def test_peek_does_not_consume():
    queue = LidarDataQueue()
    queue.allocate(4)
    queue.push(_packet(1.0), base_time=5)
    first = queue.peek()
    assert queue.used_size() == 1
    assert queue.pop() == first


def test_push_copies_points():
    queue = LidarDataQueue()
    queue.allocate(2)
    packet = _packet(1.0, count=2)
    queue.push(packet, base_time=0)
    packet.points.clear()
    assert queue.pop().points_num == 2


def test_full_and_sizes():
    queue = LidarDataQueue()
    queue.allocate(4)
    for i in range(4):
        assert not queue.is_full()
        queue.push(_packet(float(i)), base_time=i)
        assert queue.used_size() + queue.unused_size() == queue.size
    assert queue.is_full()
    assert queue.unused_size() == 0
    assert len(queue) == 4


def test_wraps_around():
    queue = LidarDataQueue()
    queue.allocate(2)
    seen = []
    for i in range(7):
        queue.push(_packet(float(i)), base_time=i)
        seen.append(queue.pop().base_time)
    assert seen == list(range(7))


def test_push_past_full_overwrites_oldest():
    queue = LidarDataQueue()
    queue.allocate(2)
    for i in range(3):
        queue.push(_packet(float(i)), base_time=i)
    assert queue.used_size() == 3
    assert queue.pop().base_time == 2


def test_empty_pop_and_peek_raise():
    queue = LidarDataQueue()
    queue.allocate(2)
    with pytest.raises(IndexError):
        queue.pop()
    with pytest.raises(IndexError):
        queue.peek()


def test_push_unallocated_raises():
    queue = LidarDataQueue()
    with pytest.raises(RuntimeError):
        queue.push(_packet(0.0), base_time=0)


def test_reset_and_release():
    queue = LidarDataQueue()
    queue.allocate(4)
    queue.push(_packet(0.0), base_time=0)
    queue.reset()
    assert queue.is_empty()
    assert queue.allocated
    queue.push(_packet(0.0), base_time=0)
    queue.release()
    assert not queue.allocated
    assert queue.size == 0
    assert queue.is_empty()
    assert not queue.is_full()