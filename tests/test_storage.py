import io
import threading

import pytest
from botocore.exceptions import ClientError
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from app.db import models  # noqa: F401
from app.exceptions import StorageError, StorageErrorCode
from app.infrastructure.imaging.pillow_transformer import PillowImageTransformer
from app.infrastructure.persistence.sqlalchemy.repositories.file_repository_sql import SqlFileRepository
from app.infrastructure.storage.content_store import ContentAddressedStore
from app.infrastructure.storage.local_storage import LocalBlobStorage
from app.infrastructure.storage.s3_storage import S3BlobStorage
from app.utils import calculate_checksum
from fakes import make_image


@pytest.fixture
def session():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    SQLModel.metadata.create_all(engine)
    with Session(engine) as s:
        yield s


@pytest.fixture
def local(tmp_path):
    return LocalBlobStorage(base_path=str(tmp_path), base_url="http://localhost:8000/uploads/")


class CountingBackend(LocalBlobStorage):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.writes = 0

    def write(self, key, data, content_type):
        self.writes += 1
        return super().write(key, data, content_type)


def test_local_storage_writes_under_key(local, tmp_path):
    url = local.write("abc.png", b"bytes", "image/png")
    assert url == "http://localhost:8000/uploads/abc.png"
    assert (tmp_path / "abc.png").read_bytes() == b"bytes"
    assert local.read(url) == b"bytes"


def test_local_storage_concurrent_writes_of_one_key(local, tmp_path):
    data = b"x" * 256 * 1024
    start = threading.Barrier(4)
    urls, errors = [], []

    def writer():
        start.wait()
        try:
            for _ in range(20):
                urls.append(local.write("same.png", data, "image/png"))
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=writer) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert set(urls) == {"http://localhost:8000/uploads/same.png"}
    assert (tmp_path / "same.png").read_bytes() == data
    assert [p.name for p in tmp_path.iterdir()] == ["same.png"]


@pytest.mark.parametrize("url", [
    "http://localhost:8000/uploads/missing.png",
    "http://elsewhere/uploads/abc.png",
    "http://localhost:8000/uploads/../secret",
])
def test_local_storage_rejects_unknown_urls(local, url):
    with pytest.raises(StorageError) as exc:
        local.read(url)
    assert exc.value.code is StorageErrorCode.FILE_NOT_FOUND


def test_content_store_names_blobs_by_checksum(session, tmp_path):
    backend = CountingBackend(base_path=str(tmp_path), base_url="http://localhost:8000/uploads")
    store = ContentAddressedStore(backend, SqlFileRepository(session), PillowImageTransformer())
    data = make_image(12, 8, fmt="JPEG")

    first = store.put(data)
    second = store.put(data)

    checksum = calculate_checksum(data)
    assert first.id == second.id
    assert first.checksum == checksum
    assert first.file_name == f"{checksum}.jpg"
    assert first.mime_type == "image/jpeg"
    assert first.storage_provider == "local"
    assert backend.writes == 1
    assert store.get(first.url) == data
    assert store.find_by_checksum(checksum).id == first.id


def test_content_store_recovers_from_lost_race(session, tmp_path):
    files = SqlFileRepository(session)
    backend = CountingBackend(base_path=str(tmp_path), base_url="http://localhost:8000/uploads")
    store = ContentAddressedStore(backend, files, PillowImageTransformer())
    data = make_image(12, 8)
    winner = store.put(data)

    class StaleLookupRepo:
        """Misses the first lookup, as a concurrent writer would."""

        def __init__(self):
            self.misses = 1

        def find_by_checksum(self, checksum, provider):
            if self.misses:
                self.misses -= 1
                return None
            return files.find_by_checksum(checksum, provider)

        def create(self, **kwargs):
            return files.create(**kwargs)

    racing = ContentAddressedStore(backend, StaleLookupRepo(), PillowImageTransformer())
    assert racing.put(data).id == winner.id


def test_content_store_limits(session, tmp_path):
    store = ContentAddressedStore(LocalBlobStorage(str(tmp_path), "http://x"), SqlFileRepository(session),
                                  PillowImageTransformer(), max_file_size=10)
    with pytest.raises(StorageError) as exc:
        store.put(make_image(12, 8))
    assert exc.value.code is StorageErrorCode.FILE_TOO_LARGE

    unlimited = ContentAddressedStore(LocalBlobStorage(str(tmp_path), "http://x"), SqlFileRepository(session),
                                      PillowImageTransformer())
    with pytest.raises(StorageError) as exc:
        unlimited.put(b"plain text")
    assert exc.value.code is StorageErrorCode.UNSUPPORTED_FILE_TYPE


class FakeS3Client:
    def __init__(self):
        self.objects = {}

    def put_object(self, Bucket, Key, Body, ContentType):
        self.objects[(Bucket, Key)] = (Body, ContentType)

    def get_object(self, Bucket, Key):
        if (Bucket, Key) not in self.objects:
            raise ClientError({"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "GetObject")
        return {"Body": io.BytesIO(self.objects[(Bucket, Key)][0])}


def test_s3_storage_builds_public_urls():
    client = FakeS3Client()
    s3 = S3BlobStorage(bucket="images", region="eu-west-1", endpoint_domain="amazonaws.com", client=client)

    url = s3.write("abc.png", b"bytes", "image/png")

    assert url == "https://images.s3.eu-west-1.amazonaws.com/abc.png"
    assert client.objects[("images", "abc.png")] == (b"bytes", "image/png")
    assert s3.read(url) == b"bytes"
    with pytest.raises(StorageError) as exc:
        s3.read("https://images.s3.eu-west-1.amazonaws.com/missing.png")
    assert exc.value.code is StorageErrorCode.FILE_NOT_FOUND
