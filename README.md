# acciping

`acciping` stores ping results and keeps running statistics over them. Each point
holds a latency in nanoseconds, a timestamp, a drop reason and the IP that answered.
Whole captures are saved to compact little-endian `.pings` files and read back from them.

## Modules

- `acciping.data` is the in-memory model of a capture.
  - `Data` keeps every point in insertion order and files each one into a `Block` for its IP.
    `Data.get` and `Data.get_full` return a point by its insertion index, and
    `Data.in_timezone` gives a copy whose timestamps display in another zone.
    `str(data)` is a one-line summary of the URL, the IPs, the time span, the stats and the streaks.
  - `Network` maps each IP, stored as 16 bytes with IPv4 mapped into IPv6, to its block.
  - `Header` pairs a `Stats` with a `TimeSpan`.
  - `Stats` keeps an online mean, variance, standard deviation, min, max and dropped count.
    `Stats.merge` and `merge_stats` combine two sets of stats, `packet_loss` gives the
    dropped fraction, and `pick_string` picks a summary that fits a given width.
  - `Runs` and `Run` track the longest streaks of good and of dropped packets.
- `acciping.gotime` has `Timestamp`, a nanosecond instant with a display time zone,
  and `format_time`, which formats with reference layouts such as `"02 Jan 2006 15:04:05.99"`.
  It also has `format_duration`, which renders durations as `8.052048ms`, `1s` or `6m34s`.
- `acciping.serialisation` handles the `.pings` encoding.
  - `to_compact` encodes, and `from_compact` decodes; trailing bytes are ignored.
  - `read_data` and `write_data` work on binary streams.
  - Bad input raises `CompactError`, a `ValueError`.
  - Files in the two older versions are migrated when they are read. Only the current version is written.
- `acciping.files`:
  - `load_file` opens an existing capture for reading and writing.
  - `make_new_empty_file` creates a file that holds an empty capture.
  - `load_or_create_file` loads the file, or creates it if it is missing, and returns the
    handle at the start of the file. It raises `ValueError` if the stored URL differs from the one given.
- `acciping.drawbuffer` has `Collection`, a fixed set of `io.BytesIO` buffers, one per
  z-index. They are cleared together with `reset`.

## Example

```python
from acciping.data import Data, PingDataPoint, PingResults
from acciping.gotime import Timestamp
from acciping.serialisation import read_data, write_data

capture = Data("www.example.com")
start = Timestamp.from_unix_millis(0, None)
for i, latency_ms in enumerate([5, 6, 5, 7, 3]):
    point = PingDataPoint(
        duration=latency_ms * 1_000_000,
        timestamp=start.add(i * 60_000_000_000),
    )
    capture.add_point(PingResults(data=point, ip=bytes([224, 0, 0, 2])))

print(capture)

with open("capture.pings", "wb") as out:
    write_data(capture, out)

with open("capture.pings", "rb") as inp:
    restored = read_data(inp)
```

To load a capture, or to start a new one when the file does not exist yet:

```python
from acciping.files import load_or_create_file

capture, handle = load_or_create_file("dev.pings", "www.example.com")
with handle:
    ...
```

## What it does not do

The package sends no pings and has no command-line tool. It draws no live graph in the
terminal either: `Collection` only holds the byte buffers for a frame. Ping results have
to come from elsewhere and be added with `Data.add_point`.

## Running the tests

```
pip install -e .[test]
pytest
```