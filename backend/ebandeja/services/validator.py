"""
Modulo de validacion de archivos subidos.

Es la PRIMERA linea de defensa: ningun archivo llega al almacenamiento sin
pasar por aqui. Verifica, en orden:

1. Que la extension sea .pdf o .docx (lista blanca).
2. Que el Content-Type declarado por el cliente (si lo envia) este permitido.
3. Que el archivo no este vacio.
4. Que no exceda el tamano maximo (20MB).
5. Que el contenido REAL (magic bytes) coincida con la extension.

Por que el paso 5?
------------------
El cliente controla el nombre y el Content-Type. Un atacante podria subir un
ejecutable llamado "derecho.pdf". python-magic lee los primeros bytes (la
"firma" del formato: un PDF empieza con "%PDF", un DOCX con "PK" porque es
un ZIP) y nos dice que es realmente el archivo.

Patron de diseno: Resultado como dataclass
------------------------------------------
validate_file no lanza excepciones: retorna un ValidationResult con
is_valid, la extension normalizada y el mensaje de error. El endpoint decide
que hacer con el resultado.
"""

from dataclasses import dataclass

import magic

from ebandeja.config import settings


@dataclass
class ValidationResult:
    """
    Resultado de la validacion de un archivo.

    Atributos:
        is_valid (bool): True si el archivo paso todas las validaciones.
        extension (str): Extension en minusculas y sin punto ("pdf", "docx").
        mime_type (str): Tipo MIME real detectado por magic bytes (vacio si
            la validacion fallo antes de llegar a detectarlo).
        error (str): Mensaje para el usuario. Vacio si is_valid es True.
    """

    is_valid: bool
    extension: str = ""
    mime_type: str = ""
    error: str = ""


def get_extension(filename: str | None) -> str:
    """
    Extrae la extension en minusculas, sin punto.

        "Derecho.PDF"     -> "pdf"
        "mi.archivo.docx" -> "docx"
        "sin_extension"   -> ""
    """
    name = filename or ""
    return name.rsplit(".", 1)[-1].lower() if "." in name else ""


def validate_file(data: bytes, filename: str | None, content_type: str | None = None) -> ValidationResult:
    """
    Valida un archivo antes de subirlo al almacenamiento.

    Parametros:
        data (bytes): Contenido completo del archivo.
        filename (str | None): Nombre original enviado por el cliente.
        content_type (str | None): Content-Type declarado en la parte
            multipart. Puede venir vacio.

    Retorna:
        ValidationResult

    Ejemplos:
        >>> validate_file(b"%PDF-1.4 ...", "borrador.pdf").is_valid
        True
        >>> validate_file(b"hola", "notas.txt").error
        'Formato invalido. Solo se permiten PDF y DOCX.'
    """

    # --- Validacion 1: extension en lista blanca ---
    extension = get_extension(filename)
    if extension not in settings.ALLOWED_EXTENSIONS:
        return ValidationResult(
            is_valid=False,
            extension=extension,
            error="Formato invalido. Solo se permiten PDF y DOCX.",
        )

    # --- Validacion 2: Content-Type declarado ---
    # Solo lo verificamos si el cliente lo envio; su ausencia no es un error.
    if content_type and content_type not in settings.ALLOWED_MIME_TYPES:
        return ValidationResult(
            is_valid=False,
            extension=extension,
            error="Tipo MIME no permitido para este archivo.",
        )

    # --- Validacion 3: archivo vacio ---
    if not data:
        return ValidationResult(
            is_valid=False,
            extension=extension,
            error="El archivo recibido esta vacio.",
        )

    # --- Validacion 4: tamano ---
    # El endpoint ya corta la lectura en MAX_FILE_SIZE + 1 bytes y responde
    # 413; esta verificacion cubre a otros callers de validate_file.
    if len(data) > settings.MAX_FILE_SIZE:
        return ValidationResult(
            is_valid=False,
            extension=extension,
            error=f"El archivo supera el tamano maximo permitido ({settings.MAX_FILE_SIZE // (1024 * 1024)}MB).",
        )

    # --- Validacion 5: contenido real vs extension ---
    # magic.from_buffer(..., mime=True) retorna el tipo MIME (ej:
    # "application/pdf") en vez de la descripcion larga.
    mime_type = magic.from_buffer(data, mime=True)
    if mime_type not in settings.SNIFFED_MIME_TYPES[extension]:
        return ValidationResult(
            is_valid=False,
            extension=extension,
            mime_type=mime_type,
            error="El contenido del archivo no coincide con su extension.",
        )

    return ValidationResult(is_valid=True, extension=extension, mime_type=mime_type)
