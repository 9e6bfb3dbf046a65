from ebandeja.config import settings
from ebandeja.services.validator import get_extension, validate_file

from conftest import PDF_BYTES

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def test_valid_pdf():
    result = validate_file(PDF_BYTES, "derecho.pdf", "application/pdf")
    assert result.is_valid is True
    assert result.extension == "pdf"
    assert result.mime_type == "application/pdf"


def test_valid_docx(docx_bytes):
    result = validate_file(docx_bytes, "derecho.docx", DOCX_MIME)
    assert result.is_valid is True
    assert result.extension == "docx"


def test_uppercase_extension_is_accepted():
    assert validate_file(PDF_BYTES, "DERECHO.PDF").is_valid is True


def test_octet_stream_content_type_is_accepted(docx_bytes):
    assert validate_file(docx_bytes, "derecho.docx", "application/octet-stream").is_valid is True


def test_rejects_txt():
    result = validate_file(b"hola", "notas.txt", "text/plain")
    assert result.is_valid is False
    assert result.error == "Formato invalido. Solo se permiten PDF y DOCX."


def test_rejects_missing_extension():
    assert validate_file(PDF_BYTES, "derecho").is_valid is False


def test_rejects_disallowed_content_type():
    result = validate_file(PDF_BYTES, "derecho.pdf", "text/html")
    assert result.is_valid is False
    assert "MIME" in result.error


def test_rejects_empty_file():
    result = validate_file(b"", "derecho.pdf", "application/pdf")
    assert result.is_valid is False
    assert "vacio" in result.error


def test_rejects_oversized_file():
    data = b"%PDF-1.4\n" + b"0" * settings.MAX_FILE_SIZE
    result = validate_file(data, "enorme.pdf")
    assert result.is_valid is False
    assert "tamano" in result.error


def test_rejects_fake_extension():
    result = validate_file(b"#!/bin/bash\necho hola\n", "script.pdf", "application/pdf")
    assert result.is_valid is False
    assert "no coincide" in result.error


def test_get_extension():
    assert get_extension("a.b.DOCX") == "docx"
    assert get_extension("sin_extension") == ""
    assert get_extension(None) == ""
