"""
Modulo de servicio de documentos.

E-Bandeja NO tiene base de datos. El estado de cada documento se deduce de
los objetos que existen en el bucket:

    pending/{id}__{nombre}   -> borrador subido, esperando firma
    signed/{id}__{nombre}    -> version firmada

El nombre del archivo va codificado con urllib.parse.quote (ej: espacios ->
"%20") para que la key sea segura, y se separa del id con "__".

Para construir la lista:
1. Se listan ambas carpetas.
2. Se agrupan los objetos por id.
3. Si un id tiene objeto firmado, el documento esta "Firmado" y se muestra la
   version firmada; si solo tiene borrador, esta "Pendiente".
4. Se ordena del mas reciente al mas antiguo.

Ciclo de vida de un documento:

    POST /api/documents          -> crea pending/{id}__{nombre}   (Pendiente)
    POST /api/documents/{id}/sign -> crea signed/{id}__{nombre}
                                     y borra el borrador           (Firmado)
    DELETE /api/documents/{id}    -> borra todos sus objetos
"""

import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from urllib.parse import quote, unquote

import structlog

from ebandeja.config import settings
from ebandeja.errors import NotFoundError, ValidationError
from ebandeja.services.storage import StorageService, StoredObject
from ebandeja.services.validator import get_extension

logger = structlog.get_logger(__name__)

STATUS_PENDING = "Pendiente"
STATUS_SIGNED = "Firmado"

# Ids validos: letras, numeros y guiones, entre 8 y 64 caracteres.
# Un UUID v4 (36 caracteres) cumple; "../../secreto" no.
DOCUMENT_ID_PATTERN = re.compile(r"^[a-zA-Z0-9-]{8,64}$")

KEY_SEPARATOR = "__"


@dataclass
class StoredFile:
    """Un objeto del bucket ya interpretado como archivo de un documento."""

    id: str
    name: str
    type: str
    path: str
    modified_at: datetime


@dataclass
class DocumentRecord:
    """
    Vista del servidor de un documento, armada a partir del bucket.

    Atributos:
        current_path: Key del objeto que se muestra (firmado si existe,
            borrador si no).
        pending_path / signed_path: Keys de cada version, o None.
    """

    id: str
    name: str
    type: str
    status: str
    modified_at: datetime
    pending_path: str | None
    signed_path: str | None
    current_path: str

    @property
    def created_at(self) -> str:
        return isoformat_utc(self.modified_at)


@dataclass
class IncomingFile:
    """Archivo recibido y ya validado, listo para subir."""

    filename: str
    extension: str
    data: bytes
    content_type: str | None = None


def normalize_document_id(raw: str | None) -> str:
    """Retorna el id limpio, o "" si no tiene un formato valido."""
    value = (raw or "").strip()
    if not DOCUMENT_ID_PATTERN.match(value):
        return ""
    return value


def sanitize_file_name(filename: str | None, extension: str) -> str:
    """
    Limpia el nombre que envio el cliente para usarlo como nombre visible.

        ("Derecho de Peticion.PDF", "pdf")  -> "Derecho de Peticion.pdf"
        ("../../etc/passwd.pdf", "pdf")     -> ".. .. etc passwd.pdf"
        ("   .docx", "docx")                -> "documento.docx"

    Las barras se reemplazan por espacios (asi nadie inventa "carpetas"
    dentro del nombre), los espacios repetidos se colapsan y la extension
    se re-agrega en minusculas.
    """
    suffix = f".{extension}" if extension else ""
    name = filename or ""
    base = name[: -len(suffix)] if suffix and name.lower().endswith(suffix) else name
    base = re.sub(r"[/\\]", " ", base)
    base = re.sub(r"\s+", " ", base).strip()
    return (base or "documento") + suffix


def build_storage_key(folder: str, doc_id: str, filename: str) -> str:
    # safe="" codifica tambien "/" para que el nombre nunca cree sub-prefijos
    return f"{folder}/{doc_id}{KEY_SEPARATOR}{quote(filename, safe='')}"


def parse_storage_object(folder: str, obj: StoredObject) -> StoredFile | None:
    """
    Interpreta la key de un objeto. Retorna None si no sigue el formato
    "{folder}/{id}__{nombre codificado}" o si la extension no es permitida;
    esos objetos simplemente se ignoran al listar.
    """
    prefix = f"{folder}/"
    if not obj.key.startswith(prefix):
        return None

    name = obj.key[len(prefix):]
    separator = name.find(KEY_SEPARATOR)
    if separator <= 0:
        return None

    doc_id = normalize_document_id(name[:separator])
    if not doc_id:
        return None

    decoded = unquote(name[separator + len(KEY_SEPARATOR):])
    extension = get_extension(decoded)
    if not decoded or extension not in settings.ALLOWED_EXTENSIONS:
        return None

    return StoredFile(
        id=doc_id,
        name=decoded,
        type=extension,
        path=obj.key,
        modified_at=_as_utc(obj.last_modified),
    )


def _as_utc(value: datetime) -> datetime:
    # S3 retorna fechas con zona horaria UTC; una fecha sin zona se asume UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def isoformat_utc(value: datetime) -> str:
    """datetime(2024, 5, 1, 9, tzinfo=utc) -> "2024-05-01T09:00:00Z"."""
    return _as_utc(value).isoformat().replace("+00:00", "Z")


class DocumentService:
    """
    Operaciones de negocio sobre documentos.

    Recibe el StorageService por constructor (inyeccion de dependencias),
    igual que StorageService recibe el cliente de boto3.
    """

    def __init__(self, storage: StorageService):
        self.storage = storage

    def _list_folder(self, folder: str) -> list[StoredFile]:
        files = []
        for obj in self.storage.list_folder(folder):
            parsed = parse_storage_object(folder, obj)
            if parsed is not None:
                files.append(parsed)
        return files

    def list_records(self) -> list[DocumentRecord]:
        """Arma la lista de documentos a partir de ambas carpetas del bucket."""
        pending = {f.id: f for f in self._list_folder(settings.PENDING_PREFIX)}
        signed = {f.id: f for f in self._list_folder(settings.SIGNED_PREFIX)}

        records = []
        # Union de ids conservando el orden: primero pendientes, luego firmados
        for doc_id in dict.fromkeys([*pending, *signed]):
            pending_file = pending.get(doc_id)
            signed_file = signed.get(doc_id)
            current = signed_file or pending_file
            records.append(DocumentRecord(
                id=doc_id,
                name=current.name,
                type=current.type,
                status=STATUS_SIGNED if signed_file else STATUS_PENDING,
                modified_at=current.modified_at,
                pending_path=pending_file.path if pending_file else None,
                signed_path=signed_file.path if signed_file else None,
                current_path=current.path,
            ))

        # Se ordena por la fecha real: como texto ".5Z" y "Z" no se comparan bien
        records.sort(key=lambda r: r.modified_at, reverse=True)
        return records

    def find_record(self, doc_id: str) -> DocumentRecord | None:
        return next((r for r in self.list_records() if r.id == doc_id), None)

    def get_existing_record(self, raw_id: str) -> DocumentRecord:
        """
        Valida el id y busca el documento.

        Raises:
            ValidationError: Si el id no tiene formato valido.
            NotFoundError: Si no existe ningun documento con ese id.
        """
        doc_id = normalize_document_id(raw_id)
        if not doc_id:
            raise ValidationError("Identificador de documento invalido.")

        record = self.find_record(doc_id)
        if record is None:
            raise NotFoundError("Documento no encontrado.")
        return record

    def to_client_document(self, record: DocumentRecord) -> dict:
        """Convierte un registro a la forma JSON que recibe el navegador."""
        return {
            "id": record.id,
            "name": record.name,
            "type": record.type,
            "status": record.status,
            "createdAt": record.created_at,
            "fileUrl": self.storage.signed_url(record.current_path),
        }

    def list_documents(self) -> list[dict]:
        return [self.to_client_document(r) for r in self.list_records()]

    def create(self, file: IncomingFile) -> dict:
        doc_id = str(uuid.uuid4())
        filename = sanitize_file_name(file.filename, file.extension)
        key = build_storage_key(settings.PENDING_PREFIX, doc_id, filename)

        self.storage.upload(key, file.data, content_type=file.content_type)
        logger.info("document_created", document_id=doc_id, name=filename)

        record = DocumentRecord(
            id=doc_id,
            name=filename,
            type=file.extension,
            status=STATUS_PENDING,
            modified_at=datetime.now(timezone.utc),
            pending_path=key,
            signed_path=None,
            current_path=key,
        )
        return self.to_client_document(record)

    def sign(self, record: DocumentRecord, file: IncomingFile) -> dict:
        """
        Reemplaza el borrador por la version firmada.

        "Firmado" es un estado terminal: un documento ya firmado no se
        puede volver a firmar.
        """
        if record.status == STATUS_SIGNED:
            raise ValidationError("El documento ya esta firmado.")

        filename = sanitize_file_name(file.filename, file.extension)
        signed_key = build_storage_key(settings.SIGNED_PREFIX, record.id, filename)

        # Primero subimos la version firmada y DESPUES borramos el borrador:
        # si la subida falla, el documento sigue intacto como Pendiente.
        self.storage.upload(signed_key, file.data, content_type=file.content_type)

        stale = [record.pending_path]
        if record.signed_path and record.signed_path != signed_key:
            stale.append(record.signed_path)
        self.storage.remove(stale)
        logger.info("document_signed", document_id=record.id, name=filename)

        signed_record = DocumentRecord(
            id=record.id,
            name=filename,
            type=file.extension,
            status=STATUS_SIGNED,
            modified_at=datetime.now(timezone.utc),
            pending_path=None,
            signed_path=signed_key,
            current_path=signed_key,
        )
        return self.to_client_document(signed_record)

    def delete(self, record: DocumentRecord) -> None:
        self.storage.remove([record.pending_path, record.signed_path, record.current_path])
        logger.info("document_deleted", document_id=record.id)
