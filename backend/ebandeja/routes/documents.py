"""
Rutas de documentos. Todas exigen una sesion valida (dependencia SessionDep).

    GET    /api/documents            -> lista completa
    POST   /api/documents            -> sube un borrador (Pendiente)
    POST   /api/documents/{id}/sign  -> adjunta la version firmada (Firmado)
    DELETE /api/documents/{id}       -> elimina el documento

Seguridad implementada:
-----------------------
- Sesion obligatoria: sin cookie valida -> 401 antes de tocar el bucket.
- Lectura parcial: se leen como maximo MAX_FILE_SIZE + 1 bytes; si llegan
  mas, 413 sin cargar el resto en memoria.
- Validacion de tipo (extension + Content-Type + magic bytes) ANTES de
  cualquier escritura en el almacenamiento.
- Validacion del id con regex antes de usarlo para armar keys del bucket.
- Rate limiting de subidas y firmas por IP (SlowAPI).
"""

from fastapi import APIRouter, File, Request, Response, UploadFile

from ebandeja.config import settings
from ebandeja.deps import DocumentServiceDep, SessionDep
from ebandeja.errors import PayloadTooLargeError, ValidationError
from ebandeja.limiter import limiter
from ebandeja.models.schemas import DocumentListResponse, DocumentResponse, ErrorResponse, OkResponse
from ebandeja.services.documents import IncomingFile
from ebandeja.services.validator import validate_file

router = APIRouter(prefix="/api/documents", tags=["documents"])


async def read_upload(file: UploadFile | None) -> IncomingFile:
    """
    Lee y valida el archivo de una peticion multipart.

    Raises:
        ValidationError (400): Sin archivo, tipo no permitido o vacio.
        PayloadTooLargeError (413): Mas de MAX_FILE_SIZE bytes.
    """
    if file is None:
        raise ValidationError("No se recibio ningun archivo.")

    # Leemos un byte de mas: si lo conseguimos, el archivo es demasiado grande
    data = await file.read(settings.MAX_FILE_SIZE + 1)
    if len(data) > settings.MAX_FILE_SIZE:
        raise PayloadTooLargeError()

    result = validate_file(data, file.filename, file.content_type)
    if not result.is_valid:
        raise ValidationError(result.error)

    return IncomingFile(
        filename=file.filename or "",
        extension=result.extension,
        data=data,
        content_type=file.content_type,
    )


@router.get("", response_model=DocumentListResponse)
async def list_documents(_: SessionDep, documents: DocumentServiceDep, response: Response):
    response.headers["Cache-Control"] = "no-store"
    return {"documents": documents.list_documents()}


@router.post(
    "",
    status_code=201,
    response_model=DocumentResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Archivo ausente, vacio o de tipo no permitido"},
        413: {"model": ErrorResponse, "description": "Archivo demasiado grande"},
    },
)
@limiter.limit(settings.UPLOAD_RATE_LIMIT)
async def create_document(
    request: Request,
    _: SessionDep,
    documents: DocumentServiceDep,
    file: UploadFile | None = File(None),
):
    """
    Sube un borrador nuevo. Queda en estado "Pendiente".

    Parametros:
        request (Request): Requerido por SlowAPI para identificar la IP.
        file (UploadFile | None): Campo multipart "file". Es opcional en la
            firma para responder nuestro propio 400 (y no el 422 generico
            de FastAPI) cuando falta.
    """
    incoming = await read_upload(file)
    return {"document": documents.create(incoming)}


@router.post(
    "/{doc_id}/sign",
    response_model=DocumentResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Id o archivo invalido, o documento ya firmado"},
        404: {"model": ErrorResponse, "description": "Documento no encontrado"},
    },
)
@limiter.limit(settings.UPLOAD_RATE_LIMIT)
async def sign_document(
    request: Request,
    doc_id: str,
    _: SessionDep,
    documents: DocumentServiceDep,
    file: UploadFile | None = File(None),
):
    """
    Adjunta la version firmada de un documento pendiente.

    El orden importa: primero se valida el id y se confirma que el documento
    existe (400/404), y solo despues se lee y valida el archivo.
    """
    record = documents.get_existing_record(doc_id)
    incoming = await read_upload(file)
    return {"document": documents.sign(record, incoming)}


@router.delete(
    "/{doc_id}",
    response_model=OkResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Id invalido"},
        404: {"model": ErrorResponse, "description": "Documento no encontrado"},
    },
)
async def delete_document(doc_id: str, _: SessionDep, documents: DocumentServiceDep):
    record = documents.get_existing_record(doc_id)
    documents.delete(record)
    return OkResponse()
