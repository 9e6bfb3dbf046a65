"""
Modulo de configuracion centralizada de E-Bandeja.

Aqui viven TODAS las constantes y configuraciones del backend: la contrasena
compartida, el bucket de almacenamiento, los tiempos de vida de la sesion,
los limites de intentos de login y las reglas de validacion de archivos.

Los valores sensibles (contrasena, credenciales, nombre del bucket) se leen
de variables de entorno con os.getenv para que la misma aplicacion corra en
desarrollo y produccion sin tocar el codigo fuente.

Patron de diseno utilizado: **Singleton implicito**
La instancia `settings` se crea UNA sola vez al importar este modulo y todos
los modulos que hagan `from ebandeja.config import settings` reciben la MISMA
instancia.
"""

import os


class Settings:
    """
    Clase que encapsula toda la configuracion de la aplicacion.

    Los atributos de clase se evaluan al importar el modulo. En tests no
    dependemos de ellos: los objetos que usan la contrasena o el bucket
    (AuthStore, StorageService) reciben sus valores por constructor.
    """

    # ---------- Autenticacion ----------

    # Contrasena unica que protege la bandeja. No tiene valor por defecto:
    # si falta, la aplicacion se niega a arrancar (ver lifespan en main.py).
    APP_PASSWORD: str = os.getenv("APP_PASSWORD", "")

    # Nombre de la cookie que transporta el token de sesion.
    SESSION_COOKIE_NAME: str = "ebandeja_session"

    # Duracion de la sesion: 8 horas. Es "deslizante": cada acceso valido
    # vuelve a contar las 8 horas desde ese momento.
    SESSION_TTL_SECONDS: int = 8 * 60 * 60

    # Ventana de conteo de intentos fallidos por IP: 15 minutos.
    LOGIN_WINDOW_SECONDS: int = 15 * 60

    # Intentos fallidos permitidos dentro de una ventana antes de bloquear.
    MAX_LOGIN_ATTEMPTS: int = 5

    # En produccion la cookie solo viaja por HTTPS (flag "secure").
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    COOKIE_SECURE: bool = ENVIRONMENT == "production"

    # ---------- Almacenamiento (S3 o compatible) ----------

    S3_BUCKET: str = os.getenv("S3_BUCKET", "e-bandeja-docs")
    AWS_REGION: str = os.getenv("AWS_REGION", "us-east-1")

    # Permite apuntar a un almacenamiento compatible con S3 (MinIO,
    # Supabase Storage, etc.). Vacio = AWS S3.
    S3_ENDPOINT_URL: str | None = os.getenv("S3_ENDPOINT_URL") or None

    # Vigencia de las URLs firmadas que recibe el navegador: 24 horas.
    FILE_URL_TTL_SECONDS: int = 24 * 60 * 60

    # Prefijos ("carpetas") dentro del bucket:
    #   pending/{id}__{nombre}  -> borrador subido, pendiente de firma
    #   signed/{id}__{nombre}   -> version firmada que reemplaza al borrador
    PENDING_PREFIX: str = "pending"
    SIGNED_PREFIX: str = "signed"

    # ---------- Limites de archivos ----------

    # 20 MB expresados en bytes (20 * 1024 KB * 1024 bytes).
    MAX_FILE_SIZE: int = 20 * 1024 * 1024

    # Margen para las cabeceras multipart (boundary, Content-Disposition,
    # Content-Type de la parte). Un cuerpo HTTP de subida nunca puede pesar
    # mas que MAX_FILE_SIZE + este margen; si lo supera se corta con 413
    # sin terminar de leerlo.
    MULTIPART_OVERHEAD: int = 64 * 1024
    MAX_UPLOAD_BODY_SIZE: int = MAX_FILE_SIZE + MULTIPART_OVERHEAD

    # Lista blanca de extensiones. Todo lo que no este aqui se rechaza.
    ALLOWED_EXTENSIONS: frozenset[str] = frozenset({"pdf", "docx"})

    # Tipos MIME que aceptamos en el Content-Type declarado por el cliente.
    # application/octet-stream se permite porque algunos navegadores lo
    # envian cuando no reconocen el tipo de un .docx.
    ALLOWED_MIME_TYPES: frozenset[str] = frozenset({
        "application/pdf",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/octet-stream",
    })

    # Tipos MIME reales (detectados por magic bytes) compatibles con cada
    # extension. Un DOCX es un ZIP con XML adentro; segun la version de
    # libmagic se reporta como DOCX, como ZIP o como binario generico.
    SNIFFED_MIME_TYPES: dict[str, frozenset[str]] = {
        "pdf": frozenset({"application/pdf"}),
        "docx": frozenset({
            "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
            "application/zip",
            "application/octet-stream",
        }),
    }

    # ---------- Servidor ----------

    CORS_ORIGINS: list[str] = os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    DEBUG: bool = os.getenv("DEBUG", "false").lower() in ("1", "true", "yes")

    # Limite de subidas/firmas por IP (formato de la libreria "limits").
    UPLOAD_RATE_LIMIT: str = os.getenv("UPLOAD_RATE_LIMIT", "30/minute")


settings = Settings()
