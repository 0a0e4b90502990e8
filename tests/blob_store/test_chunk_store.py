import uuid

import pytest

from resourcehub.services.blob_store import BlobNotFound, StorageFailure


@pytest.fixture
def chunks(storage):
    return storage.chunks


async def test_put_and_get_chunk(chunks):
    file_id = uuid.uuid4()
    await chunks.put_chunk(file_id, 0, b"first")
    assert await chunks.get_chunk(file_id, 0) == b"first"
    assert await chunks.get_chunk(file_id, 1) is None


async def test_iter_chunks_in_sequence_order(chunks):
    file_id = uuid.uuid4()
    # written out of order on purpose
    for seq in (2, 0, 1):
        await chunks.put_chunk(file_id, seq, f"chunk-{seq}".encode())

    collected = [c async for c in chunks.iter_chunks(file_id)]
    assert collected == [b"chunk-0", b"chunk-1", b"chunk-2"]


async def test_iter_chunks_is_restartable(chunks):
    file_id = uuid.uuid4()
    for seq in range(3):
        await chunks.put_chunk(file_id, seq, bytes([seq]) * 4)

    first_pass = [c async for c in chunks.iter_chunks(file_id)]
    second_pass = [c async for c in chunks.iter_chunks(file_id)]
    assert first_pass == second_pass


async def test_iter_chunks_from_later_sequence(chunks):
    file_id = uuid.uuid4()
    for seq in range(4):
        await chunks.put_chunk(file_id, seq, bytes([seq]))

    assert [c async for c in chunks.iter_chunks(file_id, start_seq=2)] == [b"\x02", b"\x03"]


async def test_iter_chunks_missing_file_raises_not_found(chunks):
    with pytest.raises(BlobNotFound):
        async for _ in chunks.iter_chunks(uuid.uuid4()):
            pass


async def test_iter_chunks_stops_at_gap(chunks):
    file_id = uuid.uuid4()
    await chunks.put_chunk(file_id, 0, b"a")
    await chunks.put_chunk(file_id, 2, b"c")

    assert [c async for c in chunks.iter_chunks(file_id)] == [b"a"]


async def test_chunks_are_append_only(chunks):
    file_id = uuid.uuid4()
    await chunks.put_chunk(file_id, 0, b"original")
    with pytest.raises(StorageFailure):
        await chunks.put_chunk(file_id, 0, b"overwrite")
    assert await chunks.get_chunk(file_id, 0) == b"original"


async def test_delete_chunks_counts_and_isolates_files(chunks):
    keep, drop = uuid.uuid4(), uuid.uuid4()
    for seq in range(3):
        await chunks.put_chunk(drop, seq, b"x")
    await chunks.put_chunk(keep, 0, b"y")

    assert await chunks.delete_chunks(drop) == 3
    assert await chunks.delete_chunks(drop) == 0
    assert await chunks.count_chunks(drop) == 0
    assert await chunks.count_chunks(keep) == 1
    assert await chunks.list_file_ids() == {keep}


async def test_count_chunks_across_store(chunks):
    a, b = uuid.uuid4(), uuid.uuid4()
    await chunks.put_chunk(a, 0, b"1")
    await chunks.put_chunk(a, 1, b"2")
    await chunks.put_chunk(b, 0, b"3")
    assert await chunks.count_chunks() == 3
