import pytest
from botocore.exceptions import ClientError
from fastapi.testclient import TestClient

from pastebox.config import Settings
from pastebox.database import make_engine, make_session_factory
from pastebox.main import create_app
from pastebox.services.paste_index import PasteIndex
from pastebox.services.paste_service import PasteService
from pastebox.services.paste_store import PasteStore
from pastebox.services.storage import LocalStorage, S3Storage, Storage

# low KDF cost keeps the suite fast; production uses the configured default
TEST_ITERATIONS = 1_000
NOW = 1_700_000_000


class FakeClock:
    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeS3Client:
    """In-memory stand-in for a boto3 S3 client."""

    def __init__(self):
        self.objects = {}
        self.deleted = []

    def put_object(self, Bucket, Key, Body):
        self.objects[(Bucket, Key)] = bytes(Body)
        return {}

    def get_object(self, Bucket, Key):
        if (Bucket, Key) not in self.objects:
            raise ClientError({"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "GetObject")
        data = self.objects[(Bucket, Key)]

        class Body:
            def read(self):
                return data

        return {"Body": Body()}

    def delete_object(self, Bucket, Key):
        self.objects.pop((Bucket, Key), None)
        self.deleted.append(Key)
        return {}


@pytest.fixture
def settings(tmp_path):
    return Settings(
        data_dir=tmp_path / "data",
        kdf_iterations=TEST_ITERATIONS,
        admin_password="admin-pw",
    ).validate()


@pytest.fixture
def s3_settings(tmp_path):
    return Settings(
        data_dir=tmp_path / "data",
        kdf_iterations=TEST_ITERATIONS,
        s3_endpoint="http://localhost:9000",
        s3_bucket="pastes",
        s3_access_key="access",
        s3_secret_key="secret",
    ).validate()


@pytest.fixture
def index(settings):
    engine = make_engine(settings.resolved_database_url)
    idx = PasteIndex(make_session_factory(engine))
    idx.create_schema()
    yield idx
    engine.dispose()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage(settings):
    return Storage.from_settings(settings)


@pytest.fixture
def s3_client():
    return FakeS3Client()


@pytest.fixture
def s3_storage(s3_settings, s3_client):
    return Storage(LocalStorage(s3_settings.attachments_dir), S3Storage("pastes", s3_client))


@pytest.fixture
def store(index, storage, settings, clock):
    return PasteStore(index, storage, gc_days=settings.gc_days, clock=clock)


@pytest.fixture
def service(store, storage, settings):
    return PasteService(store, storage, settings)


@pytest.fixture
def client(settings):
    app = create_app(settings)
    with TestClient(app) as c:
        yield c
