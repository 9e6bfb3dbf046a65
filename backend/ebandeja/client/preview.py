"""
Vista previa de documentos DOCX: conversion a HTML con python-docx.

Un PDF se puede mostrar tal cual (el visor del navegador lo entiende), pero
un DOCX no: hay que convertirlo a HTML. Este modulo recorre el documento con
python-docx, en el mismo orden en que aparece el contenido, y genera:

    Parrafo "Heading 1".."Heading 6"  -> <h1>..<h6>
    Parrafo "Title"                   -> <h1>
    Parrafos "List ..." consecutivos  -> <ul><li>...</li></ul>
    Parrafo normal                    -> <p>
    Run en negrita/cursiva/subrayado  -> <strong>/<em>/<u>
    Tabla                             -> <table><tr><td>

Todo el texto pasa por html.escape, y el resultado final por sanitize_html,
asi que el HTML nunca contiene scripts ni atributos peligrosos aunque el
documento los intente colar como texto.

Errores: la conversion NUNCA lanza excepciones hacia quien la llama. Retorna
un PreviewResult con `error` y la interfaz muestra ese mensaje en linea.
"""

import html
import io
from dataclasses import dataclass

import docx
import structlog
from docx.oxml.ns import qn
from docx.table import Table
from docx.text.paragraph import Paragraph
from lxml import html as lxml_html

logger = structlog.get_logger(__name__)

EMPTY_DOCX_ERROR = "El DOCX no tiene contenido visible para vista previa."
INVALID_DOCX_ERROR = "El archivo DOCX no se pudo procesar correctamente."

# Elementos que se eliminan completos (con su contenido) al sanitizar
UNSAFE_TAGS = ("script", "style", "iframe", "object", "embed", "link", "meta")
URL_ATTRIBUTES = ("href", "src", "xlink:href")


@dataclass
class PreviewResult:
    html: str = ""
    error: str = ""


def sanitize_html(markup: str) -> str:
    """
    Limpia un fragmento HTML: quita elementos peligrosos, atributos de
    eventos (onclick, onload, ...) y enlaces "javascript:".
    """
    if not markup.strip():
        return ""

    # create_parent envuelve el fragmento en un <div> para tener una raiz
    root = lxml_html.fragment_fromstring(markup, create_parent="div")

    for element in root.xpath("|".join(f"//{tag}" for tag in UNSAFE_TAGS)):
        element.drop_tree()

    for element in root.iter():
        # Comentarios e instrucciones de procesamiento no tienen tag de texto
        if not isinstance(element.tag, str):
            continue
        for name in list(element.attrib):
            value = element.attrib[name].strip().lower()
            lowered = name.lower()
            if lowered.startswith("on") or (lowered in URL_ATTRIBUTES and value.startswith("javascript:")):
                del element.attrib[name]

    inner = html.escape(root.text or "")
    inner += "".join(lxml_html.tostring(child, encoding="unicode") for child in root)
    return inner


def _run_html(run) -> str:
    text = html.escape(run.text)
    if not text:
        return ""
    if run.bold:
        text = f"<strong>{text}</strong>"
    if run.italic:
        text = f"<em>{text}</em>"
    if run.underline:
        text = f"<u>{text}</u>"
    return text


def _paragraph_tag(paragraph: Paragraph) -> str:
    style_name = paragraph.style.name if paragraph.style is not None else ""
    if style_name == "Title":
        return "h1"
    if style_name.startswith("Heading "):
        level = style_name.removeprefix("Heading ").strip()
        if level.isdigit() and 1 <= int(level) <= 6:
            return f"h{level}"
    if style_name.startswith("List"):
        return "li"
    return "p"


def _table_html(table: Table) -> str:
    rows = []
    for row in table.rows:
        cells = []
        for cell in row.cells:
            content = "<br>".join(
                "".join(_run_html(run) for run in p.runs) for p in cell.paragraphs
            )
            cells.append(f"<td>{content}</td>")
        rows.append(f"<tr>{''.join(cells)}</tr>")
    return f"<table>{''.join(rows)}</table>"


def _body_html(document) -> str:
    parts = []
    in_list = False

    for child in document.element.body.iterchildren():
        if child.tag == qn("w:p"):
            paragraph = Paragraph(child, document)
            content = "".join(_run_html(run) for run in paragraph.runs)
            tag = _paragraph_tag(paragraph)

            if tag == "li" and not in_list:
                parts.append("<ul>")
                in_list = True
            elif tag != "li" and in_list:
                parts.append("</ul>")
                in_list = False

            # Parrafos vacios solo separan visualmente; no los copiamos
            if content:
                parts.append(f"<{tag}>{content}</{tag}>")

        elif child.tag == qn("w:tbl"):
            if in_list:
                parts.append("</ul>")
                in_list = False
            parts.append(_table_html(Table(child, document)))

    if in_list:
        parts.append("</ul>")
    return "".join(parts)


def docx_to_html(data: bytes) -> PreviewResult:
    """
    Convierte los bytes de un DOCX a un fragmento HTML sanitizado.

    Retorna:
        PreviewResult: `html` con el contenido, o `error` con un mensaje
            para el usuario si el archivo esta vacio o no se puede leer.
    """
    try:
        document = docx.Document(io.BytesIO(data))
        body = sanitize_html(_body_html(document))
    except Exception as e:
        # python-docx puede fallar de muchas formas con un archivo corrupto
        # (ZIP invalido, XML mal formado, partes faltantes); para el usuario
        # todas significan lo mismo.
        logger.warning("docx_preview_failed", error=str(e))
        return PreviewResult(error=INVALID_DOCX_ERROR)

    # Un documento con solo "<ul></ul>" o tablas vacias tampoco tiene texto
    visible_text = lxml_html.fragment_fromstring(body, create_parent="div").text_content() if body else ""
    if not visible_text.strip():
        return PreviewResult(error=EMPTY_DOCX_ERROR)

    return PreviewResult(html=body)
