"""
Rutas de autenticacion: estado, login y logout.

    GET  /api/auth/status  -> {"authenticated": bool}
    POST /api/auth/login   -> {"ok": true} + cookie de sesion
    POST /api/auth/logout  -> {"ok": true} y borra la cookie

Ninguna de estas rutas exige sesion. Todas responden con
Cache-Control: no-store para que ni el navegador ni un proxy intermedio
guarden en cache una respuesta que depende de la cookie.
"""

from fastapi import APIRouter, Response

from ebandeja.deps import (
    AuthStoreDep,
    ClientIpDep,
    SessionTokenDep,
    clear_session_cookie,
    set_session_cookie,
)
from ebandeja.models.schemas import AuthStatusResponse, ErrorResponse, LoginRequest, OkResponse

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.get("/status", response_model=AuthStatusResponse)
async def auth_status(store: AuthStoreDep, token: SessionTokenDep, response: Response):
    """
    Indica si la cookie de la peticion corresponde a una sesion viva.

    Si la sesion es valida, su expiracion se extiende 8 horas mas (y la
    cookie se re-emite con el mismo max-age). Si no, no hay efectos.
    """
    response.headers["Cache-Control"] = "no-store"
    authenticated = store.is_authenticated(token)
    if authenticated:
        set_session_cookie(response, token)
    return AuthStatusResponse(authenticated=authenticated)


@router.post(
    "/login",
    response_model=OkResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Contrasena incorrecta"},
        429: {"model": ErrorResponse, "description": "Demasiados intentos fallidos"},
    },
)
async def login(store: AuthStoreDep, ip: ClientIpDep, response: Response, body: LoginRequest | None = None):
    """
    Valida la contrasena compartida.

    Flujo:
    1. Si la IP agoto sus 5 intentos en los ultimos 15 minutos -> 429 con
       el header Retry-After (lo lanza AuthStore.login como RateLimitedError).
    2. Si la contrasena no coincide -> se registra el fallo y 401.
    3. Si coincide -> se limpian los fallos de la IP, se crea la sesion y
       se envia la cookie.
    """
    response.headers["Cache-Control"] = "no-store"
    # Cuerpo ausente o contrasena que no es texto -> "", que nunca coincide
    password = body.password if body is not None and isinstance(body.password, str) else ""
    token = store.login(ip, password)
    set_session_cookie(response, token)
    return OkResponse()


@router.post("/logout", response_model=OkResponse)
async def logout(store: AuthStoreDep, token: SessionTokenDep, response: Response):
    """Cierra la sesion. Es idempotente: sin cookie, o dos veces, tambien responde ok."""
    store.destroy_session(token)
    clear_session_cookie(response)
    response.headers["Cache-Control"] = "no-store"
    return OkResponse()
