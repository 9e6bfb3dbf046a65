import httpx
import pytest
import pytest_asyncio

from ebandeja.config import settings

from conftest import PASSWORD, PDF_BYTES

CHUNK = 1024 * 1024
BOUNDARY = "limite-de-prueba"
MULTIPART_HEADERS = {"content-type": f"multipart/form-data; boundary={BOUNDARY}"}


class ConsumedBytes:
    """Envuelve una app ASGI y cuenta cuantos bytes del cuerpo llego a leer."""

    def __init__(self, app):
        self.app = app
        self.total = 0

    async def __call__(self, scope, receive, send):
        async def counting_receive():
            message = await receive()
            if message["type"] == "http.request":
                self.total += len(message.get("body", b""))
            return message

        await self.app(scope, counting_receive, send)


async def big_pdf_body(megabytes: int):
    yield (
        f"--{BOUNDARY}\r\n"
        'Content-Disposition: form-data; name="file"; filename="x.pdf"\r\n'
        "Content-Type: application/pdf\r\n\r\n"
    ).encode() + b"%PDF-1.4\n"
    for _ in range(megabytes):
        yield b"0" * CHUNK
    yield f"\r\n--{BOUNDARY}--\r\n".encode()


@pytest.fixture
def counted(app):
    return ConsumedBytes(app)


@pytest_asyncio.fixture
async def http(counted):
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=counted), base_url="http://testserver") as client:
        yield client


async def login(http):
    response = await http.post("/api/auth/login", json={"password": PASSWORD})
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_unauthenticated_upload_is_rejected_before_reading_the_body(http, counted):
    response = await http.post("/api/documents", content=big_pdf_body(60), headers=MULTIPART_HEADERS)

    assert response.status_code == 401
    assert response.json() == {"error": "No autenticado."}
    assert counted.total == 0


@pytest.mark.asyncio
async def test_unauthenticated_sign_is_rejected_before_reading_the_body(http, counted):
    response = await http.post(
        "/api/documents/aaaaaaaa-1111-4111-8111-111111111111/sign",
        content=big_pdf_body(5),
        headers=MULTIPART_HEADERS,
    )

    assert response.status_code == 401
    assert counted.total == 0


@pytest.mark.asyncio
async def test_declared_oversized_body_is_rejected_without_reading_it(http, counted):
    await login(http)
    counted.total = 0

    headers = {**MULTIPART_HEADERS, "content-length": str(60 * CHUNK)}
    response = await http.post("/api/documents", content=big_pdf_body(60), headers=headers)

    assert response.status_code == 413
    assert "error" in response.json()
    assert counted.total == 0


@pytest.mark.asyncio
async def test_streamed_oversized_body_is_cut_at_the_limit(http, counted, storage):
    await login(http)
    counted.total = 0

    response = await http.post("/api/documents", content=big_pdf_body(60), headers=MULTIPART_HEADERS)

    assert response.status_code == 413
    assert response.json() == {"error": "El archivo supera el tamano maximo permitido (20MB)."}
    assert counted.total <= settings.MAX_UPLOAD_BODY_SIZE + CHUNK
    assert storage.list_folder("pending") == []


@pytest.mark.asyncio
async def test_normal_upload_passes_through(http):
    await login(http)

    response = await http.post("/api/documents", files={"file": ("draft.pdf", PDF_BYTES, "application/pdf")})

    assert response.status_code == 201
    assert response.json()["document"]["status"] == "Pendiente"
