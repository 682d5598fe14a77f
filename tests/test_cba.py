import pytest

from mxkit.cba import CircularAllocator, OutOfMemoryError

BUFFER_SIZE = 50


@pytest.fixture
def cba():
    return CircularAllocator(BUFFER_SIZE)


def _allocate(cba, *lengths):
    chunks = [cba.malloc(n) for n in lengths]
    for chunk, requested in zip(chunks, lengths):
        assert chunk.size >= requested
    return chunks


def test_allocation_problems(cba):
    with pytest.raises(OutOfMemoryError):
        cba.malloc(BUFFER_SIZE)
    cba.clean()


def test_allocation(cba):
    assert cba.free(None) is None

    chunk1, _ = _allocate(cba, 25, 10)
    with pytest.raises(OutOfMemoryError):
        cba.malloc(5)

    cba.free(chunk1)
    _allocate(cba, 5, 5)
    with pytest.raises(OutOfMemoryError):
        cba.malloc(5)


def test_reusing_memory(cba):
    chunk1 = cba.malloc(1)
    cba.free(chunk1)
    assert cba.malloc(1) == chunk1

    cba.reset()
    chunk1 = cba.malloc(1)
    cba.reset()
    assert cba.malloc(1) == chunk1

    cba.clean()


def test_cleaned_allocator_has_no_memory(cba):
    cba.clean()
    with pytest.raises(OutOfMemoryError):
        cba.malloc(1)


def test_chunks_do_not_overlap_and_are_aligned():
    chunks = _allocate(CircularAllocator(256), 1, 3, 5, 8, 13)
    assert all(chunk.size % 4 == 0 for chunk in chunks)
    spans = sorted((c.offset, c.offset + c.size) for c in chunks)
    for (_, end), (start, _) in zip(spans, spans[1:]):
        assert end <= start


@pytest.mark.parametrize("first_freed", [0, 1])
def test_free_reclaims_in_any_order(cba, first_freed):
    chunks = _allocate(cba, 4, 4)
    assert list(cba) == chunks
    cba.free(chunks[first_freed])
    remaining = chunks[1 - first_freed]
    assert list(cba) == [remaining]
    cba.free(remaining)
    assert list(cba) == []
    assert cba.malloc(4) == chunks[0]


def test_chunk_data_is_writable(cba):
    chunk = cba.malloc(4)
    chunk.data[:] = b"abcd"
    assert bytes(chunk.data) == b"abcd"


def test_negative_length_rejected(cba):
    with pytest.raises(ValueError):
        cba.malloc(-1)


def test_realloc_none_returns_none(cba):
    assert cba.realloc(None, 4) is None


def test_realloc_smaller_keeps_chunk(cba):
    chunk = cba.malloc(4)
    assert cba.realloc(chunk, 2) is chunk


def test_realloc_grows_in_place(cba):
    chunk = cba.malloc(4)
    grown = cba.realloc(chunk, 10)
    assert (grown.offset, grown.size >= 10) == (chunk.offset, True)


@pytest.mark.parametrize(
    "length, error", [(20, ValueError), (BUFFER_SIZE, OutOfMemoryError)]
)
def test_realloc_failures(cba, length, error):
    first = cba.malloc(4)
    if error is ValueError:
        cba.malloc(4)
    with pytest.raises(error):
        cba.realloc(first, length)


def test_realloc_relocates_and_keeps_content():
    cba = CircularAllocator(64)
    a, b = _allocate(cba, 36, 8)
    payload = bytes(range(1, 9))
    b.data[:8] = payload
    cba.free(a)

    moved = cba.realloc(b, 20)
    assert moved.offset != b.offset
    assert moved.size >= 20
    assert bytes(moved.data[:8]) == payload
    assert list(cba) == [moved]