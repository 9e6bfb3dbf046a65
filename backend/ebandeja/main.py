"""
Punto de entrada principal de E-Bandeja (aplicacion FastAPI).

Aqui se:
1. Crea la aplicacion (create_app) con su estado: AuthStore y DocumentService.
2. Configuran los middlewares (CORS) y el rate limiter de SlowAPI.
3. Registran los handlers de errores ({"error": ...} en todas las respuestas).
4. Registran las rutas (auth, documents) y el health check.

Arquitectura de la aplicacion:
------------------------------
    main.py (punto de entrada)
        |
        +-- routes/         (Controladores: reciben HTTP requests)
        |    +-- auth.py
        |    +-- documents.py
        |
        +-- services/       (Logica de negocio)
        |    +-- auth.py        sesiones + intentos fallidos
        |    +-- documents.py   documentos a partir del bucket
        |    +-- storage.py     unico modulo que habla con S3
        |    +-- validator.py   validacion de archivos
        |
        +-- client/         (Cliente: reconciliacion de la bandeja)
        |
        +-- models/schemas.py, deps.py, errors.py, error_handlers.py
        +-- middleware.py  (guardia de subidas: sesion y tamano)
        +-- config.py, limiter.py, log.py

Patron de diseno: Application Factory
-------------------------------------
create_app() construye una app nueva cada vez que se llama. En produccion se
llama una sola vez (la variable `app` de abajo, que usa uvicorn). En tests
cada caso construye su propia app con un AuthStore y un StorageService
propios, sin estado compartido entre tests.
"""

from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from ebandeja import error_handlers
from ebandeja.config import settings
from ebandeja.errors import AppError
from ebandeja.limiter import limiter
from ebandeja.log import setup_logging
from ebandeja.middleware import UploadGuardMiddleware
from ebandeja.routes.auth import router as auth_router
from ebandeja.routes.documents import router as documents_router
from ebandeja.services.auth import AuthStore
from ebandeja.services.documents import DocumentService
from ebandeja.services.storage import StorageService, storage_service

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Codigo que corre al arrancar (antes del yield) y al apagar (despues).

    Sin contrasena configurada la app no tiene sentido: abortamos el
    arranque en vez de exponer una bandeja que nadie puede abrir.
    """
    if not settings.APP_PASSWORD:
        raise RuntimeError("Falta APP_PASSWORD. Define la variable de entorno antes de iniciar.")

    app.state.document_service.storage.ensure_bucket()
    logger.info("app_started", bucket=app.state.document_service.storage.bucket)
    yield


def create_app(auth_store: AuthStore | None = None, storage: StorageService | None = None) -> FastAPI:
    """
    Construye la aplicacion FastAPI.

    Parametros:
        auth_store (AuthStore | None): Estado de sesiones. Por defecto uno
            nuevo con la contrasena de la configuracion.
        storage (StorageService | None): Servicio de almacenamiento. Por
            defecto la instancia global (cliente real de boto3).
    """
    app = FastAPI(title="E-Bandeja", lifespan=lifespan)

    app.state.auth_store = auth_store or AuthStore(password=settings.APP_PASSWORD)
    app.state.document_service = DocumentService(storage or storage_service)

    # SlowAPI busca el limiter en app.state
    app.state.limiter = limiter

    app.add_exception_handler(AppError, error_handlers.app_error_handler)
    app.add_exception_handler(StarletteHTTPException, error_handlers.http_exception_handler)
    app.add_exception_handler(RequestValidationError, error_handlers.validation_error_handler)
    app.add_exception_handler(RateLimitExceeded, error_handlers.rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, error_handlers.unexpected_error_handler)

    # Sesion y tamano de las subidas se verifican antes de leer el cuerpo.
    # Se agrega antes que CORS para que CORS quede por fuera y tambien
    # decore sus respuestas 401/413.
    app.add_middleware(UploadGuardMiddleware)

    # allow_credentials=True: el navegador debe enviar la cookie de sesion
    # en peticiones desde el origen del frontend.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )

    @app.get("/api/health")
    async def health_check():
        """Verificacion de salud para load balancers y monitoreo."""
        return {"status": "ok"}

    app.include_router(auth_router)
    app.include_router(documents_router)

    return app


setup_logging(settings.DEBUG)

app = create_app()


if __name__ == "__main__":
    # Para desarrollo:  APP_PASSWORD=secreto python -m ebandeja.main
    uvicorn.run("ebandeja.main:app", host="0.0.0.0", port=3000, proxy_headers=True)
