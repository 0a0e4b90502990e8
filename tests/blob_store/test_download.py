import uuid
from contextlib import aclosing

import pytest

from resourcehub.services.blob_store import (
    BlobNotFound,
    BlobStoreConfig,
    CorruptedFile,
    RangeNotSatisfiable,
    StorageHandle,
    delete_blob,
    open_download,
    parse_range_header,
    upload_blob,
)
from resourcehub.services.blob_store.download import resolve_range

CHUNK = 1024


async def read_all(download) -> bytes:
    return b"".join([piece async for piece in download.iter_bytes()])


async def upload(storage, reader, data, name="notes.pdf"):
    return await upload_blob(storage, reader(data), name, "application/pdf")


async def test_round_trip(storage, reader, make_pdf):
    data = make_pdf(CHUNK * 3 + 17)
    metadata = await upload(storage, reader, data)

    download = await open_download(storage, metadata.file_id)
    assert download.content_length == len(data)
    assert not download.is_partial
    assert await read_all(download) == data


async def test_stream_yields_one_piece_per_chunk(storage, reader, make_pdf):
    data = make_pdf(CHUNK * 2 + 5)
    metadata = await upload(storage, reader, data)

    download = await open_download(storage, metadata.file_id)
    pieces = [piece async for piece in download.iter_bytes()]
    assert [len(p) for p in pieces] == [CHUNK, CHUNK, 5]


async def test_six_hundred_kib_pdf_lifecycle(storage, reader, make_pdf):
    kib = 1024
    big = StorageHandle(
        chunks=storage.chunks,
        index=storage.index,
        config=BlobStoreConfig(max_size_bytes=10 * 1024 * kib, chunk_size_bytes=256 * kib),
    )
    data = make_pdf(600 * kib)
    metadata = await upload(big, reader, data, "lecture.pdf")

    assert metadata.size_bytes == 614400
    chunks = [c async for c in big.chunks.iter_chunks(metadata.file_id)]
    assert [len(c) for c in chunks] == [256 * kib, 256 * kib, 88 * kib]

    download = await open_download(big, metadata.file_id)
    assert download.metadata.content_type == "application/pdf"
    assert await read_all(download) == data

    assert await delete_blob(big, metadata.file_id) is True
    with pytest.raises(BlobNotFound):
        await open_download(big, metadata.file_id)
    assert await big.chunks.count_chunks(metadata.file_id) == 0


async def test_empty_file_downloads_nothing(storage, reader):
    metadata = await upload(storage, reader, b"")

    download = await open_download(storage, metadata.file_id)
    assert download.content_length == 0
    assert await read_all(download) == b""


async def test_unknown_id_not_found(storage):
    with pytest.raises(BlobNotFound):
        await open_download(storage, uuid.uuid4())


async def test_missing_chunks_reported_as_corrupted(storage, reader, make_pdf):
    metadata = await upload(storage, reader, make_pdf(CHUNK * 2))
    await storage.chunks.delete_chunks(metadata.file_id)

    with pytest.raises(CorruptedFile):
        await open_download(storage, metadata.file_id)


async def test_gap_mid_stream_reported_as_corrupted(storage, reader, make_pdf):
    data = make_pdf(CHUNK * 3)
    metadata = await upload(storage, reader, data)
    await storage.chunks.delete_chunks(metadata.file_id)
    await storage.chunks.put_chunk(metadata.file_id, 0, data[:CHUNK])
    await storage.chunks.put_chunk(metadata.file_id, 1, data[CHUNK:CHUNK * 2])

    download = await open_download(storage, metadata.file_id)
    received = []
    with pytest.raises(CorruptedFile):
        async for piece in download.iter_bytes():
            received.append(piece)
    assert b"".join(received) == data[:CHUNK * 2]


async def test_short_chunk_reported_as_corrupted(storage, reader, make_pdf):
    data = make_pdf(CHUNK * 2)
    metadata = await upload(storage, reader, data)
    await storage.chunks.delete_chunks(metadata.file_id)
    await storage.chunks.put_chunk(metadata.file_id, 0, data[:CHUNK - 1])

    download = await open_download(storage, metadata.file_id)
    with pytest.raises(CorruptedFile):
        await read_all(download)


async def test_range_within_one_chunk(storage, reader, make_pdf):
    data = make_pdf(CHUNK * 3)
    metadata = await upload(storage, reader, data)

    download = await open_download(storage, metadata.file_id, (10, 19))
    assert download.is_partial
    assert (download.start, download.end, download.content_length) == (10, 19, 10)
    assert await read_all(download) == data[10:20]


async def test_range_across_chunks(storage, reader, make_pdf):
    data = make_pdf(CHUNK * 3 + 50)
    metadata = await upload(storage, reader, data)

    download = await open_download(storage, metadata.file_id, (CHUNK - 5, 2 * CHUNK + 4))
    assert await read_all(download) == data[CHUNK - 5:2 * CHUNK + 5]


async def test_open_ended_and_suffix_ranges(storage, reader, make_pdf):
    data = make_pdf(CHUNK * 2 + 30)
    metadata = await upload(storage, reader, data)

    tail = await open_download(storage, metadata.file_id, (CHUNK + 1, None))
    assert await read_all(tail) == data[CHUNK + 1:]

    suffix = await open_download(storage, metadata.file_id, (None, 40))
    assert suffix.start == len(data) - 40
    assert await read_all(suffix) == data[-40:]


async def test_range_past_end_not_satisfiable(storage, reader, make_pdf):
    data = make_pdf(100)
    metadata = await upload(storage, reader, data)

    with pytest.raises(RangeNotSatisfiable) as exc_info:
        await open_download(storage, metadata.file_id, (100, None))
    assert exc_info.value.size_bytes == 100


async def test_stream_can_only_be_consumed_once(storage, reader, make_pdf):
    metadata = await upload(storage, reader, make_pdf(CHUNK + 1))
    download = await open_download(storage, metadata.file_id)
    await read_all(download)

    with pytest.raises(RuntimeError):
        await read_all(download)


async def test_close_without_reading(storage, reader, make_pdf):
    metadata = await upload(storage, reader, make_pdf(CHUNK * 2))
    download = await open_download(storage, metadata.file_id)
    await download.aclose()
    await download.aclose()


async def test_abandoned_stream_releases_chunk_cursor(storage, reader, make_pdf, monkeypatch):
    metadata = await upload(storage, reader, make_pdf(CHUNK * 4))
    real_iter_chunks = storage.chunks.iter_chunks
    closed = []

    async def tracked_iter_chunks(file_id, start_seq=0):
        try:
            async for chunk in real_iter_chunks(file_id, start_seq):
                yield chunk
        finally:
            closed.append(file_id)

    monkeypatch.setattr(storage.chunks, "iter_chunks", tracked_iter_chunks)
    download = await open_download(storage, metadata.file_id)
    received = []
    async with aclosing(download.iter_bytes()) as pieces:
        async for piece in pieces:
            received.append(piece)
            if len(received) == 2:
                break

    assert len(received) == 2
    assert closed == [metadata.file_id]


async def test_download_after_delete_mid_stream_fails_cleanly(storage, reader, make_pdf):
    data = make_pdf(CHUNK * 4)
    metadata = await upload(storage, reader, data)
    download = await open_download(storage, metadata.file_id)
    pieces = download.iter_bytes()
    first = await anext(pieces)
    assert first == data[:CHUNK]

    await delete_blob(storage, metadata.file_id)

    # either the remaining chunks were already buffered or the gap is detected
    try:
        rest = b"".join([p async for p in pieces])
    except CorruptedFile:
        pass
    else:
        assert first + rest == data


@pytest.mark.parametrize(
    "header, expected",
    [
        (None, None),
        ("", None),
        ("bytes=0-99", (0, 99)),
        ("bytes=100-", (100, None)),
        ("bytes=-500", (None, 500)),
        ("bytes=-", None),
        ("bytes=0-1,5-9", None),
        ("items=0-1", None),
    ],
)
def test_parse_range_header(header, expected):
    assert parse_range_header(header) == expected


def test_resolve_range_clamps_end():
    assert resolve_range(100, (90, 500)) == (90, 99)
    assert resolve_range(100, (None, 500)) == (0, 99)
    assert resolve_range(100, None) is None


@pytest.mark.parametrize("requested", [(100, 120), (50, 10), (None, 0)])
def test_resolve_range_rejects(requested):
    with pytest.raises(RangeNotSatisfiable):
        resolve_range(100, requested)
