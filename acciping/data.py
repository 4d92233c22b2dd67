"""In-memory ping capture: statistics, time spans, IP blocks and streaks."""

from __future__ import annotations

import bisect
import ipaddress
import math
from dataclasses import dataclass, field
from datetime import tzinfo
from enum import IntEnum

from acciping.gotime import (
    HOUR,
    MINUTE,
    NANOS_PER_SECOND,
    ZERO_TIME,
    Timestamp,
    format_duration,
)

IP_LEN = 16
_V4_PREFIX = bytes(10) + b"\xff\xff"


@dataclass
class PingDataPoint:
    """One ping: round-trip duration in nanoseconds, time sent, and drop reason (0 = not dropped)."""

    duration: int = 0
    timestamp: Timestamp = ZERO_TIME
    drop_reason: int = 0

    def dropped(self) -> bool:
        return self.drop_reason != 0


@dataclass
class PingResults:
    data: PingDataPoint
    ip: bytes = b""


def _trunc_div(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b >= 0) else -q


def _round_sig(value: float, figures: int) -> float:
    if value == 0 or not math.isfinite(value):
        return value
    digits = figures - int(math.floor(math.log10(abs(value)))) - 1
    return round(value, digits)


def _float_duration(value: float) -> str:
    if not math.isfinite(value):
        return format_duration(0)
    return format_duration(int(value))


_HALF_DAY = 12 * HOUR
_HALF_MONTH = 30 * _HALF_DAY
_HALF_YEAR = 12 * _HALF_MONTH


@dataclass
class TimeSpan:
    begin: Timestamp = ZERO_TIME
    end: Timestamp = ZERO_TIME
    duration: int = 0

    def merge(self, other: TimeSpan) -> TimeSpan:
        """Return the span covering both spans."""
        begin = other.begin if other.begin.before(self.begin) else self.begin
        end = other.end if other.end.after(self.end) else self.end
        return TimeSpan(begin, end, end.sub(begin))

    def contains(self, timestamp: Timestamp) -> bool:
        return not self.begin.after(timestamp) and not self.end.before(timestamp)

    def add_timestamp(self, timestamp: Timestamp) -> None:
        if self.begin.after(timestamp):
            self.begin = timestamp
        if self.end.before(timestamp):
            self.end = timestamp
        self.duration = self.end.sub(self.begin)

    def format_draw(self, width: int, padding: int) -> tuple[str, list[str]]:
        """Return the start label and evenly spaced tick labels fitting in width."""
        first = "02 Jan 2006 15:04:05.00"
        if self.duration > _HALF_YEAR:
            layout = first
        elif self.duration > _HALF_MONTH:
            layout = "Jan 06 15:04"
        elif self.duration > _HALF_DAY:
            layout = "06 15:04:05"
        elif self.duration > 15 * MINUTE:
            layout = "15:04:05"
        elif self.duration > MINUTE:
            layout = "15:04:05.00"
        elif self.duration > 30 * NANOS_PER_SECOND:
            layout = "04:05.0000"
        else:
            layout = "05.0000"
        start = self.begin.format(first)
        if width < len(first):
            return start, []
        remaining = width - (len(start) + padding + padding)
        count = remaining // (len(layout) + padding)
        if count <= 0:
            return start, []
        step = _trunc_div(self.duration, count)
        return start, [self.begin.add(step * (c + 1)).format(layout) for c in range(count)]

    def __str__(self) -> str:
        first = "02 Jan 2006 15:04:05.99"
        layout = "15:04:05.9999"
        if self.duration > _HALF_YEAR:
            layout = first
        elif self.duration > _HALF_DAY:
            layout = "06 15:04:05"
        elif self.duration > _HALF_MONTH:
            layout = "Jan 06 15:04"
        elif self.duration > MINUTE:
            layout = "15:04:05.99"
        return f"{self.begin.format(first)} -> {self.end.format(layout)} ({format_duration(self.duration)})"


@dataclass
class Stats:
    """Running statistics of good ping durations (nanoseconds) plus dropped count."""

    min: int = 0
    max: int = 0
    mean: float = 0.0
    good_count: int = 0
    variance: float = 0.0
    standard_deviation: float = 0.0
    packets_dropped: int = 0
    sum_of_squares: float = 0.0

    def _compute_variance(self) -> None:
        variance = 0.0
        std = 0.0
        if self.good_count >= 2:
            variance = self.sum_of_squares / (self.good_count - 1)
            std = math.sqrt(variance)
        self.variance = variance
        self.standard_deviation = std

    def add_point(self, value: int) -> None:
        self.max = max(self.max, value)
        self.min = min(self.min, value)
        if self.good_count == 0:
            self.max = value
            self.min = value
        self.good_count += 1
        delta = value - self.mean
        new_mean = self.mean + delta / self.good_count
        self.sum_of_squares += delta * (value - new_mean)
        self.mean = new_mean
        self._compute_variance()

    def add_points(self, values) -> None:
        for value in values:
            self.add_point(value)

    def add_dropped_packet(self) -> None:
        self.packets_dropped += 1

    def merge(self, other: Stats | None) -> Stats:
        """Return new stats covering the data of both."""
        if other is None:
            return self
        ret = Stats(min=min(self.min, other.min), max=max(self.max, other.max))
        ret.good_count = self.good_count + other.good_count
        total = self.mean * self.good_count + other.mean * other.good_count
        ret.mean = total / ret.good_count if ret.good_count else math.nan
        ret.packets_dropped = self.packets_dropped + other.packets_dropped
        ret.sum_of_squares = (
            self.sum_of_squares
            + other.sum_of_squares
            + self.good_count * (self.mean - ret.mean) ** 2
            + other.good_count * (other.mean - ret.mean) ** 2
        )
        ret._compute_variance()
        return ret

    def packet_loss(self) -> float:
        total = self.good_count + self.packets_dropped
        return self.packets_dropped / total if total else math.nan

    def pick_string(self, remaining_space: int) -> str:
        dropped = self.packets_dropped > 0
        if remaining_space > 100:
            return self._long()
        if remaining_space > 80 and dropped:
            return self._medium()
        if remaining_space > 55 and not dropped:
            return self._medium()
        if remaining_space > 61 and dropped:
            return self._short()
        if remaining_space > 45 and not dropped:
            return self._short()
        if remaining_space > 10:
            return self._super_short()
        return ""

    def __str__(self) -> str:
        return self._medium()

    def _loss(self, prefix: str) -> str:
        if self.packets_dropped > 0:
            percent = _round_sig(self.packet_loss(), 4) * 100
            if percent > 0.1:
                return f" | {prefix}{percent:.1f}%"
        return ""

    def _count(self) -> int:
        return self.packets_dropped + self.good_count

    def _super_short(self) -> str:
        return (
            f"\u03bc {_float_duration(_round_sig(self.mean, 4))} | "
            f"\u03c3 {_float_duration(_round_sig(self.standard_deviation, 4))}"
            f"{self._loss('')} | Count {self._count()}"
        )

    def _short(self) -> str:
        return (
            f"\u03bc {_float_duration(self.mean)} | \u03c3 {_float_duration(self.standard_deviation)}"
            f"{self._loss('Loss ')} | Packet Count {self._count()}"
        )

    def _medium(self) -> str:
        return (
            f"Average \u03bc {_float_duration(self.mean)} | SD \u03c3 {_float_duration(self.standard_deviation)}"
            f"{self._loss('PacketLoss ')} | Packet Count {self._count()}"
        )

    def _long(self) -> str:
        return (
            f"Average \u03bc {_float_duration(self.mean)} | SD \u03c3 {_float_duration(self.standard_deviation)}"
            f"{self._loss('PacketLoss ')} | Dropped {self.packets_dropped}"
            f" | Good Packets {self.good_count} | Packet Count {self._count()}"
        )


def merge_stats(first: Stats | None, second: Stats | None) -> Stats:
    """Merge two optional stats; raises ValueError when both are missing."""
    if first is None:
        if second is None:
            raise ValueError("cannot merge two missing stats")
        return second
    return first.merge(second)


@dataclass
class Header:
    stats: Stats = field(default_factory=Stats)
    time_span: TimeSpan = field(default_factory=TimeSpan)

    def add_point(self, point: PingDataPoint) -> None:
        if self.stats.good_count == 0:
            self.time_span = TimeSpan(point.timestamp, point.timestamp)
        else:
            self.time_span.add_timestamp(point.timestamp)
        if point.dropped():
            self.stats.add_dropped_packet()
        else:
            self.stats.add_point(point.duration)

    def __str__(self) -> str:
        return f"{self.time_span} | {self.stats}"


def ip_ordering(a: bytes, b: bytes) -> int:
    """Byte-wise three-way comparison of equal-length addresses."""
    for x, y in zip(a, b):
        if x != y:
            return -1 if x < y else 1
    return 0


def _to16(ip: bytes) -> bytes:
    ip = bytes(ip)
    if len(ip) == 4:
        return _V4_PREFIX + ip
    if len(ip) == IP_LEN:
        return ip
    return bytes(IP_LEN)


def _ip_str(ip: bytes) -> str:
    address = ipaddress.IPv6Address(ip)
    mapped = address.ipv4_mapped
    return str(mapped) if mapped is not None else str(address)


@dataclass
class Network:
    """Sorted 16-byte IPs, each mapped to the block that stores its pings."""

    ips: list[bytes] = field(default_factory=list)
    block_indexes: list[int] = field(default_factory=list)
    cur_block_index: int = 0

    def add_point(self, ip: bytes) -> int:
        """Return the block index for ip; a new IP gets the next, not yet existing, block."""
        ip = _to16(ip)
        i = bisect.bisect_left(self.ips, ip)
        if i < len(self.ips) and ip_ordering(self.ips[i], ip) == 0:
            return self.block_indexes[i]
        cur = self.cur_block_index
        self.ips.insert(i, ip)
        self.block_indexes.insert(i, cur)
        self.cur_block_index += 1
        return cur

    def __str__(self) -> str:
        return ",".join(_ip_str(ip) for ip in self.ips)


@dataclass
class Run:
    longest_index_end: int = 0
    longest: int = 0
    current: int = 0

    def inc(self, index: int) -> None:
        self.current += 1
        if self.current > self.longest:
            self.longest = self.current
            self.longest_index_end = index

    def reset(self) -> None:
        self.current = 0


@dataclass
class Runs:
    good_packets: Run = field(default_factory=Run)
    dropped_packets: Run = field(default_factory=Run)

    def add_point(self, index: int, point: PingDataPoint) -> None:
        if point.dropped():
            self.good_packets.reset()
            self.dropped_packets.inc(index)
        else:
            self.good_packets.inc(index)
            self.dropped_packets.reset()

    def __str__(self) -> str:
        good = self.good_packets.longest
        dropped = self.dropped_packets.longest
        if good == 0 and dropped == 0:
            return ""
        if good == 0:
            return f"Longest Drop Streak {dropped}"
        if dropped == 0:
            return f"Longest Streak {good}"
        return f"Longest Streak {good} | Longest Drop Streak {dropped}"


@dataclass
class Block:
    header: Header = field(default_factory=Header)
    raw: list[PingDataPoint] = field(default_factory=list)

    def add_point(self, point: PingDataPoint) -> int:
        """Append a point and return its index in the block."""
        self.raw.append(point)
        self.header.add_point(point)
        return len(self.raw) - 1


@dataclass
class DataIndexes:
    block_index: int = 0
    raw_index: int = 0


class Version(IntEnum):
    NO_RUNS = 1
    RUNS_WITH_NO_INDEX = 2
    CURRENT = 3


def _epoch_header() -> Header:
    epoch = Timestamp(0)
    return Header(Stats(), TimeSpan(epoch, epoch, 0))


@dataclass
class Data:
    """A full capture for one URL, preserving insertion order across IP blocks."""

    url: str = ""
    header: Header = field(default_factory=_epoch_header)
    network: Network = field(default_factory=Network)
    insert_order: list[DataIndexes] = field(default_factory=list)
    blocks: list[Block] = field(default_factory=list)
    total_count: int = 0
    runs: Runs = field(default_factory=Runs)
    pings_meta: Version = Version.CURRENT

    def add_point(self, result: PingResults) -> None:
        block_index = self.network.add_point(result.ip)
        if block_index >= len(self.blocks):
            self.blocks.append(Block())
        raw_index = self.blocks[block_index].add_point(result.data)
        self.header.add_point(result.data)
        self.runs.add_point(self.total_count, result.data)
        self.total_count += 1
        self.insert_order.append(DataIndexes(block_index, raw_index))

    def get(self, index: int) -> PingDataPoint:
        where = self.insert_order[index]
        return self.blocks[where.block_index].raw[where.raw_index]

    def get_full(self, index: int) -> PingResults:
        where = self.insert_order[index]
        point = self.blocks[where.block_index].raw[where.raw_index]
        ip = self.network.ips[self.network.block_indexes.index(where.block_index)]
        return PingResults(point, ip)

    def is_end(self, index: int) -> bool:
        return index == len(self.insert_order)

    def is_last(self, index: int) -> bool:
        return self.is_end(index - 1)

    def in_timezone(self, tz: tzinfo | None) -> Data:
        """Return a rebuilt copy whose timestamps display in tz."""
        ret = Data(url=self.url, pings_meta=self.pings_meta)
        for i in range(self.total_count):
            full = self.get_full(i)
            point = PingDataPoint(
                full.data.duration, full.data.timestamp.in_timezone(tz), full.data.drop_reason
            )
            ret.add_point(PingResults(point, full.ip))
        return ret

    def migrate(self) -> None:
        """Bring derived fields up to the current version, leaving pings_meta untouched."""
        version = int(self.pings_meta)
        while version != Version.CURRENT:
            if version == Version.RUNS_WITH_NO_INDEX:
                self.runs = Runs()
                for i in range(self.total_count):
                    self.runs.add_point(i, self.get(i))
            version += 1

    def __str__(self) -> str:
        return (
            f"{self.url}: PingsMeta#{int(self.pings_meta)} [{self.network}] | "
            f"{self.header} | {self.runs}"
        )