import pytest

from acciping.drawbuffer import Collection


def test_get_returns_same_buffer_each_time():
    collection = Collection(3)
    collection.get(1).write(b"abc")
    collection.get(1).write(b"def")
    assert collection.get(1).getvalue() == b"abcdef"
    assert collection.get(0).getvalue() == b""


def test_buffers_are_independent():
    collection = Collection(2)
    collection.get(0).write(b"first")
    collection.get(1).write(b"second")
    assert [collection.get(z).getvalue() for z in range(2)] == [b"first", b"second"]


def test_reset_empties_all_buffers_and_allows_reuse():
    collection = Collection(3)
    for z in range(3):
        collection.get(z).write(b"frame")
    collection.reset()
    assert all(collection.get(z).getvalue() == b"" for z in range(3))
    collection.get(2).write(b"next")
    assert collection.get(2).getvalue() == b"next"


def test_length_matches_requested_count():
    assert len(Collection(4)) == 4
    assert len(Collection(0)) == 0


@pytest.mark.parametrize("z", [-1, 3, 10])
def test_out_of_range_index_raises(z):
    collection = Collection(3)
    with pytest.raises(IndexError):
        collection.get(z)


def test_negative_count_raises():
    with pytest.raises(ValueError):
        Collection(-1)