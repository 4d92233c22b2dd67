import io
import ipaddress

import pytest

from acciping.data import (
    Block,
    Data,
    DataIndexes,
    Header,
    Network,
    PingDataPoint,
    PingResults,
    Run,
    Runs,
    Stats,
    TimeSpan,
    Version,
)
from acciping.gotime import NANOS_PER_MILLI, Timestamp
from acciping.serialisation import (
    CompactError,
    Identifier,
    from_compact,
    read_data,
    to_compact,
    write_data,
)

MS = NANOS_PER_MILLI
BCAST = bytes([255, 255, 255, 255])


def ms(value):
    return Timestamp.from_unix_millis(value)


def round_trip(obj):
    return from_compact(type(obj), to_compact(obj))


def make_pings(count):
    ips = [
        ipaddress.IPv6Address("::").packed,
        ipaddress.IPv6Address("::").packed,
        ipaddress.IPv6Address("::1").packed,
        ipaddress.IPv6Address("ff01::1").packed,
        ipaddress.IPv6Address("ff02::1").packed,
        ipaddress.IPv6Address("ff02::2").packed,
        BCAST,
        bytes([224, 0, 0, 1]),
        bytes([224, 0, 0, 2]),
        bytes([0, 0, 0, 0]),
    ]
    return [
        PingResults(PingDataPoint(i * MS, ms(i * 1000)), ips[i % len(ips)])
        for i in range(count)
    ]


def test_time_span_round_trip():
    span = TimeSpan(ms(1000), ms(2000))
    span.duration = span.end.sub(span.begin)
    assert round_trip(span) == span


def test_time_span_bytes_are_pinned():
    span = TimeSpan(ms(1000), ms(2000), 10**9)
    expected = (
        bytes([1])
        + (1000).to_bytes(8, "little")
        + (2000).to_bytes(8, "little")
        + (10**9).to_bytes(8, "little")
    )
    assert to_compact(span) == expected


def test_stats_round_trip():
    stats = Stats()
    stats.add_point(2 * MS)
    stats.add_point(4 * MS)
    stats.add_point(7 * MS)
    stats.add_dropped_packet()
    decoded = round_trip(stats)
    assert decoded == stats
    assert len(to_compact(stats)) == 65


def test_stats_negative_values_round_trip():
    stats = Stats()
    stats.add_points([-5, 3, -100])
    decoded = round_trip(stats)
    assert decoded.min == -100
    assert decoded == stats


def test_header_round_trip():
    header = Header()
    header.add_point(PingDataPoint(1, ms(1000)))
    header.add_point(PingDataPoint(2, ms(3000)))
    header.add_point(PingDataPoint(0, ms(5000), drop_reason=1))
    decoded = round_trip(header)
    assert decoded == header
    assert len(to_compact(header)) == 91


def test_network_round_trip():
    network = Network()
    network.add_point(bytes(range(1, 17)))
    network.add_point(ipaddress.IPv6Address("::1").packed)
    network.add_point(bytes(4))
    decoded = round_trip(network)
    assert decoded == network
    assert decoded.cur_block_index == 3


def test_block_round_trip():
    block = Block()
    block.add_point(PingDataPoint(1, ms(1000)))
    assert round_trip(block) == block


def test_large_block_round_trip():
    block = Block()
    for result in make_pings(3000):
        block.add_point(result.data)
    decoded = round_trip(block)
    assert decoded == block
    assert len(decoded.raw) == 3000


def test_data_indexes_round_trip_and_bytes():
    indexes = DataIndexes(2, 2)
    encoded = to_compact(indexes)
    assert encoded == (2).to_bytes(8, "little") * 2
    assert from_compact(DataIndexes, encoded) == indexes


def test_run_round_trip():
    run = Run()
    run.inc(0)
    run.inc(1)
    run.reset()
    run.inc(3)
    decoded = round_trip(run)
    assert decoded == run
    assert (decoded.longest, decoded.current, decoded.longest_index_end) == (2, 1, 1)


def test_runs_round_trip():
    runs = Runs()
    runs.add_point(0, PingDataPoint())
    runs.add_point(1, PingDataPoint())
    runs.add_point(2, PingDataPoint(drop_reason=1))
    runs.add_point(3, PingDataPoint())
    encoded = to_compact(runs)
    assert encoded[0] == Identifier.RUNS
    assert len(encoded) == 49
    assert from_compact(Runs, encoded) == runs


def test_empty_data_round_trip():
    data = Data(url="www.google.com")
    encoded = to_compact(data)
    assert len(encoded) == 221
    assert encoded[0] == Identifier.DATA
    assert from_compact(Data, encoded) == data


def test_data_round_trip():
    data = Data(url="www.google.com")
    data.add_point(PingResults(PingDataPoint(1, ms(1000)), BCAST))
    data.add_point(PingResults(PingDataPoint(2, ms(2000)), BCAST))
    decoded = round_trip(data)
    assert decoded == data
    assert decoded.get(1) == PingDataPoint(2, ms(2000))


def test_large_data_round_trip():
    data = Data(url="www.google.com")
    for result in make_pings(2000):
        data.add_point(result)
    decoded = round_trip(data)
    assert decoded == data
    assert len(decoded.blocks) == 9
    assert str(decoded) == str(data)


def test_sub_millisecond_timestamps_are_truncated():
    span = TimeSpan(Timestamp(1_500_000), Timestamp(2_700_000), 1_200_000)
    decoded = round_trip(span)
    assert decoded.begin == Timestamp(1_000_000)
    assert decoded.end == Timestamp(2_000_000)
    assert decoded.duration == 1_200_000


def _streaky_data():
    data = Data(url="www.google.com")
    data.add_point(PingResults(PingDataPoint(5 * MS, ms(1000)), BCAST))
    data.add_point(PingResults(PingDataPoint(0, ms(2000), drop_reason=1), BCAST))
    data.add_point(PingResults(PingDataPoint(7 * MS, ms(3000)), BCAST))
    data.add_point(PingResults(PingDataPoint(8 * MS, ms(4000)), BCAST))
    return data


def test_version_two_runs_are_migrated():
    data = _streaky_data()
    enc = to_compact(data)
    old = enc[:1] + bytes([2]) + enc[2:168] + enc[176:192] + enc[200:216] + enc[216:]
    decoded = from_compact(Data, old)
    assert decoded.pings_meta == Version.RUNS_WITH_NO_INDEX
    assert decoded.runs == data.runs
    assert decoded.runs.good_packets.longest_index_end == 3
    assert decoded.blocks == data.blocks


def test_version_one_without_runs_is_migrated():
    data = _streaky_data()
    enc = to_compact(data)
    old = enc[:1] + bytes([1]) + enc[2:167] + enc[216:]
    decoded = from_compact(Data, old)
    assert decoded.pings_meta == Version.NO_RUNS
    assert decoded.runs == data.runs
    assert decoded.runs.dropped_packets.longest == 1
    assert str(decoded).startswith("www.google.com: PingsMeta#1 [255.255.255.255]")
    assert to_compact(decoded)[1] == Version.CURRENT


def test_empty_buffer_raises():
    with pytest.raises(CompactError, match="not enough bytes"):
        from_compact(TimeSpan, b"")


def test_wrong_identifier_raises():
    with pytest.raises(CompactError, match="Unexpected id 1 != 2"):
        from_compact(Stats, to_compact(TimeSpan()))


def test_truncated_data_raises():
    encoded = to_compact(_streaky_data())
    with pytest.raises(CompactError):
        from_compact(Data, encoded[:-5])


def test_unknown_version_raises():
    encoded = bytearray(to_compact(Data(url="x")))
    encoded[1] = 9
    with pytest.raises(CompactError, match="unknown data version 9"):
        from_compact(Data, bytes(encoded))


def test_unsupported_types_raise():
    with pytest.raises(TypeError):
        to_compact(object())
    with pytest.raises(TypeError):
        from_compact(int, b"")


def test_stream_round_trip():
    data = _streaky_data()
    stream = io.BytesIO()
    write_data(data, stream)
    stream.seek(0)
    assert read_data(stream) == data


def test_read_data_wraps_errors():
    with pytest.raises(CompactError, match="While reading into Data"):
        read_data(io.BytesIO(b"\x04"))