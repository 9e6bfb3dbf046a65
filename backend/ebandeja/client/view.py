"""
Vista de la bandeja: lo que el usuario ve, como datos + HTML generado.

DocumentView no dibuja nada por si misma. Guarda el ultimo estado renderizado
(lista, panel de vista previa, botones, overlay de firma, notificaciones) y
el reconciliador la actualiza. Una interfaz real (web, escritorio, terminal)
solo tiene que leer estos atributos.

El HTML se genera con plantillas Jinja2 en memoria con autoescape activado:
cualquier nombre de archivo como "<script>.pdf" se muestra como texto.
"""

from dataclasses import dataclass, field

from jinja2 import DictLoader, Environment, select_autoescape
from markupsafe import Markup

from ebandeja.client.state import ClientDocument

TEMPLATES = {
    "doc_list.html": """\
{%- if not documents -%}
<div class="empty">No hay documentos en la bandeja</div>
{%- else -%}
{%- for doc in documents -%}
<article data-doc-id="{{ doc.id }}" class="doc-card {{ 'pending' if doc.is_pending else 'completed' }}{{ ' active' if doc.id == active_id else '' }}">
<div class="doc-type">{{ type_labels.get(doc.type, 'DOC') }}</div>
<div class="doc-info"><p class="doc-name">{{ doc.name }}</p><p class="doc-date">{{ doc.date }}</p></div>
<button type="button" data-delete-id="{{ doc.id }}">Eliminar</button>
</article>
{%- endfor -%}
{%- endif -%}""",
    "docx_page.html": """\
<!DOCTYPE html><html><head><meta charset="utf-8">
<style>
body{font-family:Calibri,Arial,sans-serif;background:#f8fafc;color:#0f172a;margin:0;padding:32px;line-height:1.6;}
.page{background:#fff;max-width:900px;margin:0 auto;padding:40px;border:1px solid #e2e8f0;border-radius:16px;}
p{margin:0 0 1em;}
table{border-collapse:collapse;max-width:100%;}
td,th{border:1px solid #cbd5e1;padding:6px;vertical-align:top;}
img{max-width:100%;height:auto;}
</style></head><body><article class="page">{{ body }}</article></body></html>""",
    "info_page.html": """\
<!DOCTYPE html><html><head><meta charset="utf-8"></head>
<body style="margin:0;display:flex;align-items:center;justify-content:center;height:100vh;background:#f8fafc;font-family:sans-serif;color:#94a3b8;">
<div style="text-align:center;padding:24px;max-width:420px;">
<p style="margin:0 0 8px;font-weight:700;color:#475569;">{{ title }}</p>
<p style="margin:0;font-size:13px;line-height:1.5;">{{ message }}</p>
</div></body></html>""",
}

TYPE_LABELS = {"pdf": "PDF", "docx": "DOCX"}

templates_env = Environment(
    loader=DictLoader(TEMPLATES),
    autoescape=select_autoescape(default=True, default_for_string=True),
)


def render_doc_list(documents: list[ClientDocument], active_id: str | None) -> str:
    template = templates_env.get_template("doc_list.html")
    return template.render(documents=documents, active_id=active_id, type_labels=TYPE_LABELS)


def render_docx_page(body_html: str) -> str:
    # body_html ya viene sanitizado por preview.docx_to_html; Markup evita
    # que Jinja lo escape de nuevo
    return templates_env.get_template("docx_page.html").render(body=Markup(body_html))


def render_info_page(title: str, message: str) -> str:
    return templates_env.get_template("info_page.html").render(title=title, message=message)


@dataclass
class ActionState:
    """
    Botones del panel de vista previa.

    Pendiente: se puede descargar y firmar.
    Firmado:   firmar queda deshabilitado y descargar confirma que es la
               version firmada.
    """

    download_enabled: bool = False
    download_label: str = "Descargar"
    sign_enabled: bool = False


@dataclass
class PreviewPane:
    """
    Panel de vista previa. `kind` indica que mostrar:
        "placeholder" -> nada seleccionado
        "url"         -> PDF, mostrar `url` directamente
        "html"        -> documento HTML completo en `html` (DOCX o mensaje)
    """

    kind: str = "placeholder"
    title: str = "Visor de Documentos"
    status: str = ""
    url: str = ""
    html: str = ""


@dataclass
class DocumentView:
    screen: str = "login"
    badge_count: int = 0
    list_html: str = ""
    preview: PreviewPane = field(default_factory=PreviewPane)
    actions: ActionState = field(default_factory=ActionState)
    overlay_open: bool = False
    notifications: list[str] = field(default_factory=list)

    def notify(self, message: str) -> None:
        self.notifications.append(message)

    def render_list(self, documents: list[ClientDocument], active_id: str | None) -> None:
        self.badge_count = len(documents)
        self.list_html = render_doc_list(documents, active_id)

    def reset_preview(self) -> None:
        self.overlay_open = False
        self.preview = PreviewPane()
        self.actions = ActionState()

    def show_login(self) -> None:
        self.screen = "login"

    def show_main(self) -> None:
        self.screen = "main"
