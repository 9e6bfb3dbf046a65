import io

import boto3
import docx
import pytest
from fastapi.testclient import TestClient
from moto import mock_aws

from ebandeja.config import settings
from ebandeja.limiter import limiter
from ebandeja.main import create_app
from ebandeja.services.auth import AuthStore
from ebandeja.services.storage import StorageService

PASSWORD = "clave-de-prueba"

PDF_BYTES = (
    b"%PDF-1.4\n1 0 obj<</Type/Catalog/Pages 2 0 R>>endobj\n"
    b"2 0 obj<</Type/Pages/Kids[3 0 R]/Count 1>>endobj\n"
    b"3 0 obj<</Type/Page/MediaBox[0 0 612 792]/Parent 2 0 R>>endobj\n"
    b"trailer<</Size 4/Root 1 0 R>>\n%%EOF"
)


class FakeClock:
    """Reloj manual: los tests avanzan el tiempo con advance()."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_docx(*paragraphs: str) -> bytes:
    document = docx.Document()
    for text in paragraphs:
        document.add_paragraph(text)
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def read_object(storage: StorageService, key: str) -> bytes:
    """Lee un objeto directo del bucket (moto) para verificar su contenido."""
    return storage.client.get_object(Bucket=storage.bucket, Key=key)["Body"].read()


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch):
    """Credenciales falsas para que boto3 nunca use las reales."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", settings.AWS_REGION)


@pytest.fixture(autouse=True)
def reset_rate_limits():
    limiter.reset()
    yield
    limiter.reset()


@pytest.fixture
def s3_client():
    """Provide a mocked S3 client with a test bucket."""
    with mock_aws():
        client = boto3.client("s3", region_name=settings.AWS_REGION)
        client.create_bucket(Bucket=settings.S3_BUCKET)
        yield client


@pytest.fixture
def storage(s3_client):
    return StorageService(client=s3_client)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def auth_store(clock):
    return AuthStore(password=PASSWORD, clock=clock)


@pytest.fixture
def app(auth_store, storage):
    return create_app(auth_store=auth_store, storage=storage)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def logged_in_client(client):
    response = client.post("/api/auth/login", json={"password": PASSWORD})
    assert response.status_code == 200
    return client


@pytest.fixture
def docx_bytes():
    return make_docx("Derecho de peticion", "Solicito respetuosamente...")
