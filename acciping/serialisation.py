"""Compact little-endian binary encoding of ping captures (the '.pings' format)."""

from __future__ import annotations

import struct
from enum import IntEnum
from typing import BinaryIO, Callable

from acciping.data import (
    IP_LEN,
    Block,
    Data,
    DataIndexes,
    Header,
    Network,
    PingDataPoint,
    Run,
    Runs,
    Stats,
    TimeSpan,
    Version,
)
from acciping.gotime import Timestamp

_I64 = struct.Struct("<q")
_U64 = struct.Struct("<Q")
_F64 = struct.Struct("<d")
_MASK64 = 0xFFFF_FFFF_FFFF_FFFF

# Identifier + header + the (empty) length prefix of a block's raw points.
_HEADER_LEN = 1 + (1 + 8 * 3) + (1 + 8 * 8)
_BLOCK_HEADER_LEN = 1 + _HEADER_LEN + 8


class Identifier(IntEnum):
    """Leading byte tagging each structure in the encoding."""

    TIME_SPAN = 1
    STATS = 2
    BLOCK = 3
    HEADER = 4
    DATA = 5
    NETWORK = 6
    RUNS = 7


class CompactError(ValueError):
    """Raised when bytes cannot be decoded into a capture structure."""


class _Writer:
    def __init__(self) -> None:
        self.buf = bytearray()

    def ident(self, ident: Identifier) -> None:
        self.buf.append(int(ident))

    def byte(self, value: int) -> None:
        self.buf.append(value & 0xFF)

    def int64(self, value: int) -> None:
        self.buf += _U64.pack(value & _MASK64)

    def float64(self, value: float) -> None:
        self.buf += _F64.pack(value)

    def time(self, timestamp: Timestamp) -> None:
        self.int64(timestamp.unix_millis())

    def raw(self, chunk: bytes) -> None:
        self.buf += chunk


class _Reader:
    def __init__(self, buffer: bytes) -> None:
        self.view = bytes(buffer)
        self.pos = 0

    def take(self, count: int) -> bytes:
        end = self.pos + count
        if count < 0 or end > len(self.view):
            raise CompactError(
                f"not enough bytes: need {count} at offset {self.pos}, "
                f"have {len(self.view) - self.pos}"
            )
        chunk = self.view[self.pos:end]
        self.pos = end
        return chunk

    def expect(self, ident: Identifier) -> None:
        if self.pos >= len(self.view):
            raise CompactError("Cannot read id, not enough bytes")
        got = self.view[self.pos]
        if got != ident:
            raise CompactError(f"Unexpected id {got} != {int(ident)}")
        self.pos += 1

    def byte(self) -> int:
        return self.take(1)[0]

    def int64(self) -> int:
        return _I64.unpack(self.take(8))[0]

    def uint64(self) -> int:
        return _U64.unpack(self.take(8))[0]

    def float64(self) -> float:
        return _F64.unpack(self.take(8))[0]

    def time(self) -> Timestamp:
        return Timestamp.from_unix_millis(self.int64())


# --- writers -----------------------------------------------------------------


def _write_time_span(w: _Writer, span: TimeSpan) -> None:
    w.ident(Identifier.TIME_SPAN)
    w.time(span.begin)
    w.time(span.end)
    w.int64(span.duration)


def _write_stats(w: _Writer, stats: Stats) -> None:
    w.ident(Identifier.STATS)
    w.int64(stats.min)
    w.int64(stats.max)
    w.float64(stats.mean)
    w.int64(stats.good_count)
    w.float64(stats.variance)
    w.float64(stats.standard_deviation)
    w.int64(stats.packets_dropped)
    w.float64(stats.sum_of_squares)


def _write_header(w: _Writer, header: Header) -> None:
    w.ident(Identifier.HEADER)
    _write_stats(w, header.stats)
    _write_time_span(w, header.time_span)


def _write_point(w: _Writer, point: PingDataPoint) -> None:
    w.int64(point.duration)
    w.time(point.timestamp)
    w.byte(point.drop_reason)


def _write_run(w: _Writer, run: Run) -> None:
    w.int64(run.longest_index_end)
    w.int64(run.longest)
    w.int64(run.current)


def _write_runs(w: _Writer, runs: Runs) -> None:
    w.ident(Identifier.RUNS)
    _write_run(w, runs.good_packets)
    _write_run(w, runs.dropped_packets)


def _write_data_indexes(w: _Writer, indexes: DataIndexes) -> None:
    w.int64(indexes.block_index)
    w.int64(indexes.raw_index)


def _write_network_header(w: _Writer, network: Network) -> None:
    w.ident(Identifier.NETWORK)
    w.int64(network.cur_block_index)
    w.int64(len(network.ips))
    w.int64(len(network.block_indexes))


def _write_network_body(w: _Writer, network: Network) -> None:
    for ip in network.ips:
        w.raw(bytes(ip).ljust(IP_LEN, b"\0")[:IP_LEN])
    for index in network.block_indexes:
        w.int64(index)


def _write_network(w: _Writer, network: Network) -> None:
    _write_network_header(w, network)
    _write_network_body(w, network)


def _write_block_header(w: _Writer, block: Block) -> None:
    w.ident(Identifier.BLOCK)
    w.int64(len(block.raw))
    _write_header(w, block.header)


def _write_block_body(w: _Writer, block: Block) -> None:
    for point in block.raw:
        _write_point(w, point)


def _write_block(w: _Writer, block: Block) -> None:
    _write_block_header(w, block)
    _write_block_body(w, block)


def _write_data(w: _Writer, data: Data) -> None:
    url = data.url.encode("utf-8")
    w.ident(Identifier.DATA)
    # Only the current version is ever written; older inputs were migrated on read.
    w.byte(Version.CURRENT)
    w.int64(len(data.insert_order))
    w.int64(data.total_count)
    _write_network_header(w, data.network)
    w.int64(_BLOCK_HEADER_LEN)
    w.int64(len(data.blocks))
    for block in data.blocks:
        _write_block_header(w, block)
    w.int64(len(url))
    _write_runs(w, data.runs)
    _write_header(w, data.header)
    for indexes in data.insert_order:
        _write_data_indexes(w, indexes)
    _write_network_body(w, data.network)
    for block in data.blocks:
        _write_block_body(w, block)
    w.raw(url)


# --- readers -----------------------------------------------------------------


def _read_time_span(r: _Reader) -> TimeSpan:
    r.expect(Identifier.TIME_SPAN)
    return TimeSpan(r.time(), r.time(), r.int64())


def _read_stats(r: _Reader) -> Stats:
    r.expect(Identifier.STATS)
    return Stats(
        min=r.int64(),
        max=r.int64(),
        mean=r.float64(),
        good_count=r.uint64(),
        variance=r.float64(),
        standard_deviation=r.float64(),
        packets_dropped=r.uint64(),
        sum_of_squares=r.float64(),
    )


def _read_header(r: _Reader) -> Header:
    r.expect(Identifier.HEADER)
    stats = _read_stats(r)
    return Header(stats, _read_time_span(r))


def _read_point(r: _Reader) -> PingDataPoint:
    return PingDataPoint(r.int64(), r.time(), r.byte())


def _read_run(r: _Reader, version: Version = Version.CURRENT) -> Run:
    if version == Version.NO_RUNS:
        raise CompactError("runs are not stored in this version")
    if version == Version.RUNS_WITH_NO_INDEX:
        return Run(longest=r.uint64(), current=r.uint64())
    return Run(r.int64(), r.uint64(), r.uint64())


def _read_runs(r: _Reader, version: Version = Version.CURRENT) -> Runs:
    r.expect(Identifier.RUNS)
    good = _read_run(r, version)
    return Runs(good, _read_run(r, version))


def _read_data_indexes(r: _Reader) -> DataIndexes:
    return DataIndexes(r.int64(), r.int64())


def _read_network_header(r: _Reader) -> tuple[int, int, int]:
    r.expect(Identifier.NETWORK)
    return r.int64(), r.uint64(), r.uint64()


def _read_network_body(r: _Reader, cur: int, ips_len: int, indexes_len: int) -> Network:
    ips = [r.take(IP_LEN) for _ in range(ips_len)]
    indexes = [r.int64() for _ in range(indexes_len)]
    return Network(ips, indexes, cur)


def _read_network(r: _Reader) -> Network:
    return _read_network_body(r, *_read_network_header(r))


def _read_block_header(r: _Reader) -> tuple[int, Header]:
    r.expect(Identifier.BLOCK)
    size = r.uint64()
    return size, _read_header(r)


def _read_block(r: _Reader) -> Block:
    size, header = _read_block_header(r)
    return Block(header, [_read_point(r) for _ in range(size)])


def _read_data(r: _Reader) -> Data:
    r.expect(Identifier.DATA)
    raw_version = r.byte()
    try:
        version = Version(raw_version)
    except ValueError:
        raise CompactError(f"unknown data version {raw_version}") from None
    insert_len = r.uint64()
    total_count = r.int64()
    network_header = _read_network_header(r)
    r.int64()  # block header length, fixed for every known version
    block_headers = [_read_block_header(r) for _ in range(r.uint64())]
    url_len = r.uint64()
    runs = Runs() if version == Version.NO_RUNS else _read_runs(r, version)
    header = _read_header(r)
    insert_order = [_read_data_indexes(r) for _ in range(insert_len)]
    network = _read_network_body(r, *network_header)
    blocks = [
        Block(block_header, [_read_point(r) for _ in range(size)])
        for size, block_header in block_headers
    ]
    try:
        url = r.take(url_len).decode("utf-8")
    except UnicodeDecodeError as err:
        raise CompactError(f"invalid url: {err}") from err
    data = Data(
        url=url,
        header=header,
        network=network,
        insert_order=insert_order,
        blocks=blocks,
        total_count=total_count,
        runs=runs,
        pings_meta=version,
    )
    data.migrate()
    return data


_WRITERS: dict[type, Callable[[_Writer, object], None]] = {
    TimeSpan: _write_time_span,
    Stats: _write_stats,
    Header: _write_header,
    Network: _write_network,
    Block: _write_block,
    DataIndexes: _write_data_indexes,
    Run: _write_run,
    Runs: _write_runs,
    Data: _write_data,
}

_READERS: dict[type, Callable[[_Reader], object]] = {
    TimeSpan: _read_time_span,
    Stats: _read_stats,
    Header: _read_header,
    Network: _read_network,
    Block: _read_block,
    DataIndexes: _read_data_indexes,
    Run: _read_run,
    Runs: _read_runs,
    Data: _read_data,
}


def to_compact(obj) -> bytes:
    """Encode a capture structure into its compact bytes."""
    writer_fn = _WRITERS.get(type(obj))
    if writer_fn is None:
        raise TypeError(f"cannot encode {type(obj).__name__}")
    writer = _Writer()
    writer_fn(writer, obj)
    return bytes(writer.buf)


def from_compact(cls, buffer):
    """Decode an instance of cls from the start of buffer; trailing bytes are ignored."""
    reader_fn = _READERS.get(cls)
    if reader_fn is None:
        raise TypeError(f"cannot decode {getattr(cls, '__name__', cls)}")
    try:
        return reader_fn(_Reader(buffer))
    except CompactError as err:
        raise CompactError(f"while reading compact {cls.__name__}: {err}") from err


def read_data(stream: BinaryIO) -> Data:
    """Read a whole '.pings' stream into a Data."""
    try:
        return from_compact(Data, stream.read())
    except CompactError as err:
        raise CompactError(f"While reading into Data{{}}: {err}") from err


def write_data(data: Data, stream: BinaryIO) -> None:
    """Write data to a binary stream in compact form."""
    stream.write(to_compact(data))