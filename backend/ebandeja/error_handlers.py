"""
Handlers que convierten excepciones en respuestas JSON {"error": ...}.

FastAPI permite registrar una funcion por tipo de excepcion con
app.add_exception_handler(). Cuando un endpoint (o una dependencia) lanza
esa excepcion, FastAPI llama al handler y envia lo que este retorne.

Asi toda la API responde errores con la MISMA forma, venga de donde venga:
    - Nuestros AppError (401, 429, 400, 404, 413, 500)
    - HTTPException de Starlette (ej: 404 de una ruta inexistente, 405)
    - Errores de validacion de FastAPI/Pydantic (422 -> los exponemos como 400)
    - RateLimitExceeded de SlowAPI (429)
    - Cualquier otra excepcion (500 generico, sin traza para el cliente)
"""

import structlog
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from ebandeja.errors import AppError, RateLimitedError

logger = structlog.get_logger(__name__)


def error_response(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


def _auth_headers(request: Request) -> dict:
    # Las respuestas de /api/auth/* nunca van a cache, tampoco los errores:
    # la Response inyectada en la ruta se descarta cuando la ruta lanza
    # una excepcion
    if request.url.path.startswith("/api/auth/"):
        return {"Cache-Control": "no-store"}
    return {}


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    headers = _auth_headers(request)
    if isinstance(exc, RateLimitedError):
        # Retry-After le dice al cliente cuantos segundos esperar
        headers["Retry-After"] = str(exc.retry_after)
    if exc.status_code >= 500:
        logger.error("request_failed", path=request.url.path, error=exc.message)
    return error_response(exc.status_code, exc.message, headers)


async def http_exception_handler(_: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Error en la solicitud."
    if exc.status_code == 404:
        message = "Not found"
    return error_response(exc.status_code, message, getattr(exc, "headers", None))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    # Mostramos el primer problema de forma legible: "body.password: ..."
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = f"Solicitud invalida ({location}): {first.get('msg', '')}"
    else:
        message = "Solicitud invalida."
    return error_response(400, message, _auth_headers(request))


async def rate_limit_exceeded_handler(_: Request, exc: RateLimitExceeded) -> JSONResponse:
    return error_response(429, "Demasiadas solicitudes. Intenta de nuevo en un minuto.", {"Retry-After": "60"})


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unexpected_error", path=request.url.path, error=str(exc))
    return error_response(500, "Error interno del servidor.")
