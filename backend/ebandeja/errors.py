"""
Taxonomia de errores de E-Bandeja.

Cada clase representa una familia de fallos con su codigo HTTP asociado.
Los servicios lanzan estas excepciones sin saber nada de HTTP; los handlers
registrados en main.py (ver error_handlers.py) las traducen a respuestas
JSON con la forma {"error": "mensaje legible"}.

Los mensajes de estas excepciones SE MUESTRAN al usuario, asi que nunca
deben contener detalles internos (rutas del bucket, trazas, credenciales).
"""


class AppError(Exception):
    """Clase base. `status_code` es el codigo HTTP que corresponde al error."""

    status_code: int = 500
    default_message: str = "Error interno del servidor."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class UnauthenticatedError(AppError):
    """No hay sesion valida, o la contrasena es incorrecta."""

    status_code = 401
    default_message = "No autenticado."


class RateLimitedError(AppError):
    """
    Demasiados intentos fallidos de login desde la misma IP.

    `retry_after` son los segundos que faltan para que termine la ventana;
    el handler lo envia en el header HTTP Retry-After.
    """

    status_code = 429
    default_message = "Demasiados intentos fallidos. Intenta de nuevo en unos minutos."

    def __init__(self, retry_after: int, message: str | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class ValidationError(AppError):
    """Entrada invalida: id mal formado, archivo vacio o de tipo no permitido."""

    status_code = 400
    default_message = "Solicitud invalida."


class NotFoundError(AppError):
    status_code = 404
    default_message = "Documento no encontrado."


class PayloadTooLargeError(AppError):
    status_code = 413
    default_message = "El archivo supera el tamano maximo permitido (20MB)."


class StorageError(AppError):
    """Cualquier fallo del almacenamiento de objetos (S3 o compatible)."""

    status_code = 500
    default_message = "Error en el almacenamiento de archivos."
