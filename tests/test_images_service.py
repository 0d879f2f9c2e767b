import base64
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException

from app.application.ports.image_repo import new_processing_image, new_stored_image
from app.application.services.images_service import ImagesService, decode_cursor, encode_cursor
from app.exceptions import InvalidCursorError
from fakes import FakeContentStore, FakeImageRepo, make_image


@pytest.fixture
def repo():
    return FakeImageRepo(FakeContentStore())


def test_cursor_round_trip():
    ts = datetime(2024, 1, 15, 12, 0, 0, 123456, tzinfo=timezone.utc)
    assert decode_cursor(encode_cursor(ts)) == ts


def test_cursor_accepts_utc_suffix():
    cursor = base64.b64encode(b"2024-01-15T12:00:00.000Z").decode()
    assert decode_cursor(cursor) == datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def test_cursor_without_offset_is_read_as_utc():
    cursor = base64.b64encode(b"2024-01-15T12:00:00").decode()
    assert decode_cursor(cursor).utcoffset() == timedelta(0)


@pytest.mark.parametrize("cursor", ["not base64!!", "aGVsbG8="])
def test_bad_cursor(cursor):
    with pytest.raises(InvalidCursorError):
        decode_cursor(cursor)


def test_processing_image_points_at_original(repo):
    original = repo.store.put(make_image(40, 30))
    repo.create(new_processing_image("img-1", "sunset", 40, 30, original.id))

    dto = ImagesService(repo).get_image("img-1")

    assert dto.url == original.url
    assert (dto.width, dto.height) == (40, 30)
    assert dto.status == "processing"


def test_stored_image_points_at_processed_file(repo):
    original = repo.store.put(make_image(40, 30))
    processed = repo.store.put(make_image(20, 10))
    repo.create(new_stored_image("img-1", "sunset", 40, 30, original.id, processed.id, 20, 10))

    dto = ImagesService(repo).get_image("img-1")

    assert dto.url == processed.url
    assert (dto.width, dto.height) == (20, 10)
    assert dto.status == "stored"


def test_missing_image_is_404(repo):
    with pytest.raises(HTTPException) as exc:
        ImagesService(repo).get_image("nope")
    assert exc.value.status_code == 404


def test_list_reports_next_page(repo):
    original = repo.store.put(make_image(10, 10))
    for n in range(3):
        repo.create(new_stored_image(f"img-{n}", "t", 10, 10, original.id, original.id, 10, 10))

    page = ImagesService(repo).list_images(limit=2)

    assert page.count == 2
    assert page.hasNext is True
    assert page.nextCursor == encode_cursor(page.data[-1].createdAt)
    assert page.prevCursor is None


@pytest.mark.parametrize("kwargs", [{"cursor": "%%%"}, {"direction": "sideways"}, {"limit": 0}, {"limit": 1000}])
def test_list_rejects_bad_arguments(repo, kwargs):
    with pytest.raises(HTTPException) as exc:
        ImagesService(repo).list_images(**kwargs)
    assert exc.value.status_code == 400
