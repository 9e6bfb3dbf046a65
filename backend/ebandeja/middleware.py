"""
Guardia de subidas a nivel ASGI.

Por que no basta con la dependencia SessionDep?
-----------------------------------------------
FastAPI parsea el cuerpo multipart (y lo vuelca a un archivo temporal)
ANTES de resolver las dependencias del endpoint. Sin esta guardia, un
cliente sin sesion podria enviar cientos de MB que el servidor recibiria
completos solo para responder 401 al final.

UploadGuardMiddleware se ejecuta antes que FastAPI y, para
POST /api/documents*:

1. Sin cookie de sesion valida -> 401 sin leer ni un byte del cuerpo.
2. Content-Length mayor a MAX_UPLOAD_BODY_SIZE -> 413 sin leer el cuerpo.
3. Sin Content-Length (chunked) o con uno mentiroso: cuenta los bytes a
   medida que llegan y, al pasar el limite, deja de entregarlos a la app y
   responde 413.

Es un middleware ASGI "puro" (no BaseHTTPMiddleware) porque necesita
envolver `receive` para contar bytes sin cargar el cuerpo en memoria.
"""

import structlog
from starlette.requests import Request
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ebandeja.config import settings
from ebandeja.error_handlers import error_response
from ebandeja.errors import PayloadTooLargeError, UnauthenticatedError

logger = structlog.get_logger(__name__)

UPLOAD_PATH_PREFIX = "/api/documents"


class UploadGuardMiddleware:
    def __init__(self, app: ASGIApp, max_body_size: int = settings.MAX_UPLOAD_BODY_SIZE):
        self.app = app
        self.max_body_size = max_body_size

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if not self._is_upload(scope):
            await self.app(scope, receive, send)
            return

        request = Request(scope)

        store = request.app.state.auth_store
        if not store.is_authenticated(request.cookies.get(settings.SESSION_COOKIE_NAME, "")):
            response = error_response(401, UnauthenticatedError.default_message)
            await response(scope, receive, send)
            return

        content_length = request.headers.get("content-length", "")
        if content_length.isdigit() and int(content_length) > self.max_body_size:
            logger.info("upload_rejected_too_large", path=scope["path"], content_length=int(content_length))
            await self._too_large(scope, receive, send)
            return

        received = 0
        too_large = False
        response_started = False

        async def limited_receive() -> Message:
            nonlocal received, too_large
            if too_large:
                return {"type": "http.disconnect"}

            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_body_size:
                    # A la app le decimos que el cliente se fue: deja de leer
                    too_large = True
                    return {"type": "http.disconnect"}
            return message

        async def guarded_send(message: Message) -> None:
            nonlocal response_started
            # Lo que responda la app tras el corte se descarta; respondemos 413
            if too_large:
                return
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, limited_receive, guarded_send)
        except Exception:
            if not too_large:
                raise

        if too_large and not response_started:
            logger.info("upload_rejected_too_large", path=scope["path"], received=received)
            await self._too_large(scope, receive, send)

    @staticmethod
    def _is_upload(scope: Scope) -> bool:
        return (
            scope["type"] == "http"
            and scope["method"] == "POST"
            and scope["path"].startswith(UPLOAD_PATH_PREFIX)
        )

    @staticmethod
    async def _too_large(scope: Scope, receive: Receive, send: Send) -> None:
        response = error_response(413, PayloadTooLargeError.default_message)
        await response(scope, receive, send)
