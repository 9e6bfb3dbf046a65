"""
Dependencias compartidas por los endpoints (sistema Depends de FastAPI).

FastAPI ejecuta estas funciones ANTES del endpoint y le pasa su resultado.
Asi los endpoints no buscan por su cuenta el AuthStore ni el servicio de
documentos: los reciben ya resueltos, y los tests pueden construir la app
con objetos propios (ver create_app en main.py).
"""

from typing import Annotated

from fastapi import Depends, Request, Response
from slowapi.util import get_remote_address

from ebandeja.config import settings
from ebandeja.errors import UnauthenticatedError
from ebandeja.services.auth import AuthStore
from ebandeja.services.documents import DocumentService


def get_auth_store(request: Request) -> AuthStore:
    return request.app.state.auth_store


def get_document_service(request: Request) -> DocumentService:
    return request.app.state.document_service


def get_session_token(request: Request) -> str:
    # Starlette ya parsea el header Cookie; una cookie ausente o ilegible
    # simplemente no aparece en el diccionario.
    return request.cookies.get(settings.SESSION_COOKIE_NAME, "")


def get_client_ip(request: Request) -> str:
    return get_remote_address(request) or "unknown"


def set_session_cookie(response: Response, token: str) -> None:
    """
    Envia el token al navegador en una cookie:
    - httponly: JavaScript no puede leerla (mitiga robo por XSS).
    - samesite="lax": no viaja en peticiones POST de otros sitios (CSRF).
    - secure: solo por HTTPS, en produccion.
    - max_age: 8 horas, igual que la sesion del servidor.
    """
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.SESSION_TTL_SECONDS,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.COOKIE_SECURE,
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=settings.SESSION_COOKIE_NAME,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.COOKIE_SECURE,
    )


AuthStoreDep = Annotated[AuthStore, Depends(get_auth_store)]
DocumentServiceDep = Annotated[DocumentService, Depends(get_document_service)]
SessionTokenDep = Annotated[str, Depends(get_session_token)]
ClientIpDep = Annotated[str, Depends(get_client_ip)]


def require_session(store: AuthStoreDep, token: SessionTokenDep, response: Response) -> str:
    """
    Guardia de los endpoints protegidos: sin sesion valida, HTTP 401.

    Si la sesion es valida, re-emite la cookie para que su max-age se
    deslice junto con la expiracion del servidor.
    """
    if not store.is_authenticated(token):
        raise UnauthenticatedError()
    set_session_cookie(response, token)
    return token


SessionDep = Annotated[str, Depends(require_session)]
