"""
Cliente HTTP de la API de E-Bandeja, basado en httpx.AsyncClient.

httpx guarda las cookies que responde el servidor, asi que despues de
login() todas las peticiones viajan con la cookie de sesion, igual que en
un navegador.

Errores:
    - 401 -> ApiUnauthenticatedError (la interfaz vuelve al login)
    - otro codigo >= 400 -> ApiError con el mensaje {"error": ...} del
      servidor, o un mensaje generico si la respuesta no es JSON
    - fallo de red -> ApiError con el mensaje generico de la operacion
"""

import httpx


class ApiError(Exception):
    def __init__(self, message: str, status_code: int | None = None, retry_after: int | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.retry_after = retry_after

    @property
    def message(self) -> str:
        return str(self)


class ApiUnauthenticatedError(ApiError):
    pass


def _error_message(response: httpx.Response, fallback: str) -> str:
    try:
        payload = response.json()
    except ValueError:
        return fallback
    if isinstance(payload, dict) and isinstance(payload.get("error"), str):
        return payload["error"]
    return fallback


class DocumentsApi:
    """
    Parametros:
        base_url (str): Origen del servidor, ej: "http://localhost:3000".
        client (httpx.AsyncClient | None): Cliente ya construido. En tests se
            pasa uno con transport=httpx.ASGITransport(app=...) para hablar
            con la app FastAPI sin abrir sockets.
    """

    def __init__(self, base_url: str = "http://localhost:3000", client: httpx.AsyncClient | None = None):
        self.client = client or httpx.AsyncClient(base_url=base_url, timeout=30.0)

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _request(self, method: str, url: str, fallback: str, **kwargs) -> httpx.Response:
        try:
            response = await self.client.request(method, url, headers={"Accept": "application/json"}, **kwargs)
        except httpx.HTTPError as e:
            raise ApiError(fallback) from e

        if response.status_code == 401:
            raise ApiUnauthenticatedError(_error_message(response, "No autenticado."), status_code=401)
        if response.status_code >= 400:
            retry_after = response.headers.get("Retry-After")
            raise ApiError(
                _error_message(response, fallback),
                status_code=response.status_code,
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        return response

    # ---------- Autenticacion ----------

    async def status(self) -> bool:
        try:
            response = await self._request("GET", "/api/auth/status", "No fue posible validar la sesion.")
        except ApiError:
            return False
        return response.json().get("authenticated") is True

    async def login(self, password: str) -> None:
        await self._request(
            "POST", "/api/auth/login", "No fue posible validar la contrasena.", json={"password": password}
        )

    async def logout(self) -> None:
        await self._request("POST", "/api/auth/logout", "No fue posible cerrar la sesion.")

    # ---------- Documentos ----------

    async def list_documents(self) -> list[dict]:
        response = await self._request("GET", "/api/documents", "No fue posible cargar los documentos.")
        return response.json().get("documents", [])

    async def upload(self, filename: str, data: bytes, content_type: str | None = None) -> dict:
        response = await self._request(
            "POST",
            "/api/documents",
            "No fue posible subir el documento.",
            files={"file": (filename, data, content_type or _guess_content_type(filename))},
        )
        return response.json()["document"]

    async def sign(self, doc_id: str, filename: str, data: bytes, content_type: str | None = None) -> dict:
        response = await self._request(
            "POST",
            f"/api/documents/{doc_id}/sign",
            "No fue posible completar la firma.",
            files={"file": (filename, data, content_type or _guess_content_type(filename))},
        )
        return response.json()["document"]

    async def delete(self, doc_id: str) -> None:
        await self._request("DELETE", f"/api/documents/{doc_id}", "No fue posible eliminar el documento.")

    async def fetch_bytes(self, url: str) -> bytes:
        """Descarga el contenido de una URL firmada (absoluta, fuera de la API)."""
        try:
            response = await self.client.get(url)
        except httpx.HTTPError as e:
            raise ApiError("No fue posible descargar el archivo.") from e
        if response.status_code >= 400:
            raise ApiError("No fue posible descargar el archivo.", status_code=response.status_code)
        return response.content


def _guess_content_type(filename: str) -> str:
    lowered = filename.lower()
    if lowered.endswith(".pdf"):
        return "application/pdf"
    if lowered.endswith(".docx"):
        return "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
    return "application/octet-stream"
