"""Opening, creating and loading '.pings' capture files."""

from __future__ import annotations

import os
from typing import BinaryIO

from acciping.data import Data
from acciping.serialisation import read_data, write_data

_FILE_MODE = 0o777


def _open_read_write(path: str | os.PathLike, create: bool) -> BinaryIO:
    flags = os.O_RDWR | getattr(os, "O_BINARY", 0)
    if create:
        flags |= os.O_CREAT
    fd = os.open(path, flags, _FILE_MODE)
    try:
        return os.fdopen(fd, "r+b")
    except BaseException:
        os.close(fd)
        raise


def load_file(path: str | os.PathLike) -> tuple[Data, BinaryIO]:
    """Read an existing '.pings' file, returning its data and a read/write handle.

    Raises FileNotFoundError when the file does not exist and CompactError when
    its contents cannot be parsed; the handle is closed on any failure.
    """
    handle = _open_read_write(path, create=False)
    try:
        data = read_data(handle)
    except BaseException:
        handle.close()
        raise
    return data, handle


def make_new_empty_file(path: str | os.PathLike, url: str) -> tuple[Data, BinaryIO]:
    """Create (or open) a file at path and write empty data for url into it."""
    handle = _open_read_write(path, create=True)
    data = Data(url=url)
    try:
        write_data(data, handle)
        handle.flush()
    except BaseException:
        handle.close()
        raise
    return data, handle


def load_or_create_file(path: str | os.PathLike, url: str) -> tuple[Data, BinaryIO]:
    """Load the '.pings' file at path, creating it with empty data for url if missing.

    The returned handle is positioned at the start of the file. A loaded file
    recorded against a different url raises ValueError.
    """
    try:
        data, handle = load_file(path)
    except FileNotFoundError:
        data, handle = make_new_empty_file(path, url)
    if data.url != url:
        handle.close()
        raise ValueError(f"data should be initialised for {url!r}, found {data.url!r}")
    try:
        handle.seek(0)
    except BaseException:
        handle.close()
        raise
    return data, handle