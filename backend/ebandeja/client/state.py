"""
Estado local de la bandeja en el cliente y la regla de reconciliacion.

Cada vez que el cliente refresca la lista, el servidor manda la verdad
(id, nombre, estado, URL). Lo unico que el cliente agrega por su cuenta es
la vista previa de los DOCX, que es cara de generar (descargar + convertir).

Regla de fusion (merge_documents):
    Si un documento ya existia con el MISMO nombre y el MISMO estado, se
    conserva su vista previa. Si cambio el nombre o el estado (por ejemplo
    porque se firmo), la vista previa se descarta y se vuelve a generar
    cuando se abra.

Limitacion conocida: la regla compara nombre + estado, no el contenido.
Re-subir un archivo distinto con el mismo nombre y estado conservaria una
vista previa vieja; para evitarlo el servidor tendria que exponer un hash o
ETag del contenido.
"""

from dataclasses import dataclass
from datetime import datetime

STATUS_PENDING = "Pendiente"
STATUS_SIGNED = "Firmado"

ALLOWED_EXTENSIONS = ("pdf", "docx")


@dataclass
class ClientDocument:
    id: str
    name: str
    type: str
    status: str
    date: str
    url: str
    docx_html: str = ""
    preview_error: str = ""
    is_preview_ready: bool = True
    is_preview_loading: bool = False

    @property
    def is_pending(self) -> bool:
        return self.status == STATUS_PENDING


def get_extension(filename: str) -> str:
    return filename.rsplit(".", 1)[-1].lower() if "." in filename else ""


def format_date(value: str) -> str:
    """"2024-05-01T14:30:00Z" -> "01/05/2024 14:30". Si no se puede leer, se deja igual."""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return value or ""
    return parsed.strftime("%d/%m/%Y %H:%M")


def from_server(record: dict) -> ClientDocument:
    doc_type = str(record.get("type", "")).lower()
    return ClientDocument(
        id=str(record["id"]),
        name=str(record.get("name", "")),
        type=doc_type,
        status=str(record.get("status", STATUS_PENDING)),
        date=format_date(str(record.get("createdAt", ""))),
        url=str(record.get("fileUrl", "")),
        is_preview_ready=doc_type != "docx",
    )


def merge_documents(previous: list[ClientDocument], incoming: list[dict]) -> list[ClientDocument]:
    """Reemplaza la lista local por la del servidor, conservando vistas previas validas."""
    previous_by_id = {doc.id: doc for doc in previous}
    merged = []

    for record in incoming:
        doc = from_server(record)
        old = previous_by_id.get(doc.id)

        if old is not None and old.name == doc.name and old.status == doc.status:
            doc.docx_html = old.docx_html
            doc.preview_error = old.preview_error
            doc.is_preview_loading = old.is_preview_loading
            doc.is_preview_ready = doc.type != "docx" or old.is_preview_ready

        merged.append(doc)

    return merged


def select_active_id(
    documents: list[ClientDocument],
    focus_id: str | None,
    previous_active_id: str | None,
) -> str | None:
    """
    Elige el documento activo despues de un refresco, en este orden:
    el pedido explicitamente, el que ya estaba activo, el primero, ninguno.
    """
    ids = {doc.id for doc in documents}
    if focus_id and focus_id in ids:
        return focus_id
    if previous_active_id and previous_active_id in ids:
        return previous_active_id
    return documents[0].id if documents else None


def download_file_name(doc: ClientDocument) -> str:
    """Nombre con el que se guarda una descarga: agrega la extension si falta."""
    if doc.type and get_extension(doc.name) != doc.type:
        return f"{doc.name}.{doc.type}"
    return doc.name
