"""
Reconciliador de la bandeja: mantiene la lista local sincronizada con el
servidor y controla la vista previa de cada documento.

Maquina de estados por documento:

    Pendiente --(firmar: sube la version firmada)--> Firmado   (terminal)

Sub-estado solo para DOCX (vista previa):

    NotLoaded --> Loading --> Ready(html) | Ready(error)

Concurrencia (asyncio, un solo hilo):
- load_documents tiene una bandera de reentrada: si ya hay una carga en
  curso, las llamadas nuevas se descartan (no se encolan).
- Cada DOCX tiene su bandera is_preview_loading: reabrir el mismo documento
  mientras se convierte no dispara otra descarga.
- Una descarga de vista previa que ya no corresponde al documento activo
  igual termina y guarda su resultado; solo re-dibuja el panel si su
  documento sigue activo.

Ninguna operacion publica lanza excepciones: los errores de red o del
servidor se convierten en notificaciones en la vista.
"""

import asyncio
from pathlib import Path
from typing import Awaitable, Callable

import structlog

from ebandeja.client.api import ApiError, ApiUnauthenticatedError, DocumentsApi
from ebandeja.client.preview import PreviewResult, docx_to_html
from ebandeja.client.state import (
    ALLOWED_EXTENSIONS,
    STATUS_PENDING,
    ClientDocument,
    download_file_name,
    get_extension,
    merge_documents,
    select_active_id,
)
from ebandeja.client.view import ActionState, DocumentView, PreviewPane, render_docx_page, render_info_page

logger = structlog.get_logger(__name__)

INVALID_FORMAT_MESSAGE = "Formato invalido. Solo se permiten PDF y DOCX."
DOCX_DOWNLOAD_ERROR = "No se pudo descargar el DOCX para la vista previa."
DOWNLOAD_SAVE_ERROR = "No fue posible guardar el archivo descargado."


async def convert_in_thread(data: bytes) -> PreviewResult:
    # python-docx es sincronico; lo corremos en un hilo para no bloquear el loop
    return await asyncio.to_thread(docx_to_html, data)


class DocumentReconciler:
    """
    Parametros:
        api (DocumentsApi): Cliente de la API.
        view (DocumentView | None): Donde se escribe el estado renderizado.
        convert_docx: Funcion async bytes -> PreviewResult. Inyectable para
            tests o para usar otro conversor.
    """

    def __init__(
        self,
        api: DocumentsApi,
        view: DocumentView | None = None,
        convert_docx: Callable[[bytes], Awaitable[PreviewResult]] = convert_in_thread,
    ):
        self.api = api
        self.view = view or DocumentView()
        self.convert_docx = convert_docx
        self.documents: list[ClientDocument] = []
        self.active_doc_id: str | None = None
        self._is_loading = False
        self._preview_tasks: set[asyncio.Task] = set()

    def get_document(self, doc_id: str | None) -> ClientDocument | None:
        return next((doc for doc in self.documents if doc.id == doc_id), None)

    @property
    def active_document(self) -> ClientDocument | None:
        return self.get_document(self.active_doc_id)

    # ---------- Sesion ----------

    async def check_auth(self) -> bool:
        authenticated = await self.api.status()
        if authenticated:
            self.view.show_main()
            await self.load_documents()
        else:
            self.view.show_login()
        return authenticated

    async def login(self, password: str) -> bool:
        if not password:
            self.view.notify("Ingresa la contrasena")
            return False

        try:
            await self.api.login(password)
        except ApiError as e:
            self.view.notify(e.message)
            return False

        self.view.show_main()
        await self.load_documents()
        return True

    async def logout(self) -> None:
        try:
            await self.api.logout()
        except ApiError as e:
            # Aunque falle el logout remoto, limpiamos la interfaz local
            logger.warning("logout_failed", error=e.message)
        self._reset_state()

    def _reset_state(self) -> None:
        self.documents = []
        self.active_doc_id = None
        self.view.show_login()
        self.view.reset_preview()
        self.render()

    # ---------- Reconciliacion ----------

    async def load_documents(self, focus_id: str | None = None) -> None:
        if self._is_loading:
            return

        self._is_loading = True
        try:
            try:
                incoming = await self.api.list_documents()
            except ApiUnauthenticatedError:
                self._reset_state()
                return
            except ApiError as e:
                logger.warning("documents_refresh_failed", error=e.message)
                self.view.notify(e.message)
                return

            self.documents = merge_documents(self.documents, incoming)
            self.active_doc_id = select_active_id(self.documents, focus_id, self.active_doc_id)
            self.render()

            if self.active_doc_id:
                self.show_preview(self.active_doc_id)
            else:
                self.view.reset_preview()
        finally:
            self._is_loading = False

    def render(self) -> None:
        self.view.render_list(self.documents, self.active_doc_id)
        if not self.documents and not self.active_doc_id:
            self.view.reset_preview()

    # ---------- Vista previa ----------

    def show_preview(self, doc_id: str) -> None:
        self.active_doc_id = doc_id
        doc = self.get_document(doc_id)
        if doc is None:
            return

        if doc.is_pending:
            self.view.actions = ActionState(download_enabled=True, download_label="Descargar", sign_enabled=True)
        else:
            self.view.actions = ActionState(
                download_enabled=True, download_label="Descargar documento firmado", sign_enabled=False
            )

        self.view.preview = self._preview_pane(doc)
        self.render()

    def _preview_pane(self, doc: ClientDocument) -> PreviewPane:
        pane = PreviewPane(title=doc.name, status=doc.status)

        if doc.type == "pdf":
            pane.kind = "url"
            pane.url = doc.url
            return pane

        pane.kind = "html"
        if doc.type != "docx":
            pane.html = render_info_page("Formato no compatible", "Solo se soporta vista previa para PDF y DOCX.")
        elif not doc.is_preview_ready:
            self._start_docx_preview(doc)
            pane.html = render_info_page("Procesando DOCX", "Estamos generando la vista previa del documento.")
        elif doc.preview_error:
            pane.html = render_info_page("No se pudo renderizar el DOCX", doc.preview_error)
        else:
            pane.html = render_docx_page(doc.docx_html)
        return pane

    def _start_docx_preview(self, doc: ClientDocument) -> None:
        if doc.is_preview_loading:
            return
        doc.is_preview_loading = True
        task = asyncio.create_task(self._load_docx_preview(doc.id, doc.name, doc.status, doc.url))
        self._preview_tasks.add(task)
        task.add_done_callback(self._preview_tasks.discard)

    async def _load_docx_preview(self, doc_id: str, name: str, status: str, url: str) -> None:
        try:
            data = await self.api.fetch_bytes(url)
            result = await self.convert_docx(data)
        except ApiError as e:
            logger.warning("docx_preview_download_failed", document_id=doc_id, error=e.message)
            result = PreviewResult(error=DOCX_DOWNLOAD_ERROR)

        # La lista pudo refrescarse mientras tanto: buscamos el documento
        # actual y descartamos el resultado si ahora es otro archivo
        doc = self.get_document(doc_id)
        if doc is None or doc.name != name or doc.status != status:
            return

        doc.docx_html = result.html
        doc.preview_error = result.error
        doc.is_preview_ready = True
        doc.is_preview_loading = False

        if self.active_doc_id == doc_id:
            self.show_preview(doc_id)
        else:
            self.render()

    async def wait_for_previews(self) -> None:
        """Espera a que terminen las conversiones de vista previa en curso."""
        while self._preview_tasks:
            await asyncio.gather(*list(self._preview_tasks))

    # ---------- Acciones ----------

    async def upload_document(self, filename: str, data: bytes) -> bool:
        if get_extension(filename) not in ALLOWED_EXTENSIONS:
            self.view.notify(INVALID_FORMAT_MESSAGE)
            return False

        try:
            document = await self.api.upload(filename, data)
        except ApiUnauthenticatedError:
            self._reset_state()
            return False
        except ApiError as e:
            self.view.notify(e.message)
            return False

        await self.load_documents(focus_id=document.get("id"))
        return True

    def request_signature(self) -> None:
        """Abre el overlay para adjuntar la version firmada del documento activo."""
        doc = self.active_document
        if doc is not None and doc.status == STATUS_PENDING:
            self.view.overlay_open = True

    def cancel_signing(self) -> None:
        self.view.overlay_open = False

    async def complete_signing(self, filename: str, data: bytes) -> bool:
        doc = self.active_document
        if doc is None:
            return False

        if get_extension(filename) not in ALLOWED_EXTENSIONS:
            self.view.notify(INVALID_FORMAT_MESSAGE)
            return False

        try:
            document = await self.api.sign(doc.id, filename, data)
        except ApiUnauthenticatedError:
            self._reset_state()
            return False
        except ApiError as e:
            self.view.notify(e.message)
            return False

        self.view.overlay_open = False
        await self.load_documents(focus_id=document.get("id") or doc.id)
        return True

    async def delete_document(self, doc_id: str) -> bool:
        try:
            await self.api.delete(doc_id)
        except ApiUnauthenticatedError:
            self._reset_state()
            return False
        except ApiError as e:
            self.view.notify(e.message)
            return False

        if self.active_doc_id == doc_id:
            self.active_doc_id = None
            self.view.reset_preview()
        await self.load_documents()
        return True

    async def download_active_document(self, target_dir: Path) -> Path | None:
        doc = self.active_document
        if doc is None:
            return None

        try:
            data = await self.api.fetch_bytes(doc.url)
        except ApiError as e:
            self.view.notify(e.message)
            return None

        path = Path(target_dir) / download_file_name(doc)
        try:
            path.write_bytes(data)
        except OSError as e:
            logger.warning("download_save_failed", path=str(path), error=str(e))
            self.view.notify(DOWNLOAD_SAVE_ERROR)
            return None
        return path
