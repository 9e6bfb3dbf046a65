from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from ebandeja.errors import NotFoundError, ValidationError
from ebandeja.services.documents import (
    STATUS_PENDING,
    STATUS_SIGNED,
    DocumentService,
    IncomingFile,
    build_storage_key,
    normalize_document_id,
    parse_storage_object,
    sanitize_file_name,
)
from ebandeja.services.storage import StoredObject

DOC_A = "aaaaaaaa-1111-4111-8111-111111111111"
DOC_B = "bbbbbbbb-2222-4222-8222-222222222222"


def at(hour: int) -> datetime:
    return datetime(2024, 5, 1, hour, 0, 0, tzinfo=timezone.utc)


def fake_storage(pending=(), signed=()):
    """Storage falso: list_folder responde segun la carpeta pedida."""
    storage = MagicMock()
    folders = {"pending": list(pending), "signed": list(signed)}
    storage.list_folder.side_effect = lambda prefix: folders[prefix]
    storage.signed_url.side_effect = lambda key: f"https://bucket.test/{key}?firma=1"
    return storage


@pytest.mark.parametrize("filename,extension,expected", [
    ("Derecho de Peticion.PDF", "pdf", "Derecho de Peticion.pdf"),
    ("../../etc/passwd.pdf", "pdf", ".. .. etc passwd.pdf"),
    ("carpeta\\archivo.docx", "docx", "carpeta archivo.docx"),
    ("  muchos    espacios  .pdf", "pdf", "muchos espacios.pdf"),
    ("   .docx", "docx", "documento.docx"),
    (None, "pdf", "documento.pdf"),
])
def test_sanitize_file_name(filename, extension, expected):
    assert sanitize_file_name(filename, extension) == expected


@pytest.mark.parametrize("raw,expected", [
    (DOC_A, DOC_A),
    (f"  {DOC_A}  ", DOC_A),
    ("corto", ""),
    ("../../secreto", ""),
    ("a" * 65, ""),
    (None, ""),
])
def test_normalize_document_id(raw, expected):
    assert normalize_document_id(raw) == expected


def test_storage_key_encodes_the_name():
    key = build_storage_key("pending", DOC_A, "mi archivo/raro.pdf")
    assert key == f"pending/{DOC_A}__mi%20archivo%2Fraro.pdf"


def test_parse_storage_object_decodes_the_name():
    obj = StoredObject(key=f"signed/{DOC_A}__Acta%20final.docx", last_modified=at(9))
    parsed = parse_storage_object("signed", obj)

    assert parsed.id == DOC_A
    assert parsed.name == "Acta final.docx"
    assert parsed.type == "docx"
    assert parsed.path == obj.key
    assert parsed.modified_at == at(9)


@pytest.mark.parametrize("key", [
    "pending/sin-separador.pdf",
    "pending/__nombre.pdf",
    "pending/corto__nombre.pdf",
    f"pending/{DOC_A}__notas.txt",
    f"otra/{DOC_A}__nombre.pdf",
])
def test_parse_storage_object_ignores_foreign_keys(key):
    assert parse_storage_object("pending", StoredObject(key=key, last_modified=at(9))) is None


def test_list_records_joins_folders_and_sorts_newest_first():
    storage = fake_storage(
        pending=[
            StoredObject(f"pending/{DOC_A}__viejo.pdf", at(8)),
            StoredObject(f"pending/{DOC_B}__borrador.docx", at(10)),
        ],
        signed=[StoredObject(f"signed/{DOC_A}__firmado.pdf", at(12))],
    )

    records = DocumentService(storage).list_records()

    assert [r.id for r in records] == [DOC_A, DOC_B]
    signed, pending = records
    assert signed.status == STATUS_SIGNED
    assert signed.name == "firmado.pdf"
    assert signed.current_path == f"signed/{DOC_A}__firmado.pdf"
    assert signed.pending_path == f"pending/{DOC_A}__viejo.pdf"
    assert pending.status == STATUS_PENDING
    assert pending.signed_path is None


def test_list_records_sorts_by_time_with_fractional_seconds():
    whole = datetime(2024, 5, 1, 9, 0, 0, tzinfo=timezone.utc)
    fraction = datetime(2024, 5, 1, 9, 0, 0, 500000, tzinfo=timezone.utc)
    storage = fake_storage(pending=[
        StoredObject(f"pending/{DOC_A}__entero.pdf", whole),
        StoredObject(f"pending/{DOC_B}__fraccion.pdf", fraction),
    ])

    records = DocumentService(storage).list_records()

    assert [r.id for r in records] == [DOC_B, DOC_A]
    assert records[0].created_at == "2024-05-01T09:00:00.500000Z"
    assert records[1].created_at == "2024-05-01T09:00:00Z"


def test_list_documents_uses_signed_urls():
    storage = fake_storage(pending=[StoredObject(f"pending/{DOC_A}__a.pdf", at(8))])

    documents = DocumentService(storage).list_documents()

    assert documents == [{
        "id": DOC_A,
        "name": "a.pdf",
        "type": "pdf",
        "status": STATUS_PENDING,
        "createdAt": "2024-05-01T08:00:00Z",
        "fileUrl": f"https://bucket.test/pending/{DOC_A}__a.pdf?firma=1",
    }]


def test_get_existing_record_errors():
    service = DocumentService(fake_storage())

    with pytest.raises(ValidationError):
        service.get_existing_record("no valido!")
    with pytest.raises(NotFoundError):
        service.get_existing_record(DOC_A)


def test_sign_uploads_before_removing_the_draft():
    storage = fake_storage(pending=[StoredObject(f"pending/{DOC_A}__a.pdf", at(8))])
    service = DocumentService(storage)
    record = service.get_existing_record(DOC_A)

    document = service.sign(record, IncomingFile("a firmado.pdf", "pdf", b"%PDF-1.4", "application/pdf"))

    assert document["status"] == STATUS_SIGNED
    assert document["name"] == "a firmado.pdf"
    calls = [name for name, _, _ in storage.method_calls if name in ("upload", "remove")]
    assert calls == ["upload", "remove"]
    storage.upload.assert_called_once_with(
        f"signed/{DOC_A}__a%20firmado.pdf", b"%PDF-1.4", content_type="application/pdf"
    )
    storage.remove.assert_called_once_with([f"pending/{DOC_A}__a.pdf"])


def test_sign_failure_leaves_the_draft():
    storage = fake_storage(pending=[StoredObject(f"pending/{DOC_A}__a.pdf", at(8))])
    storage.upload.side_effect = RuntimeError("fallo")
    service = DocumentService(storage)
    record = service.get_existing_record(DOC_A)

    with pytest.raises(RuntimeError):
        service.sign(record, IncomingFile("b.pdf", "pdf", b"%PDF-1.4"))
    storage.remove.assert_not_called()


def test_signed_document_cannot_be_signed_again():
    storage = fake_storage(signed=[StoredObject(f"signed/{DOC_A}__a.pdf", at(8))])
    service = DocumentService(storage)
    record = service.get_existing_record(DOC_A)

    with pytest.raises(ValidationError):
        service.sign(record, IncomingFile("b.pdf", "pdf", b"%PDF-1.4"))
    storage.upload.assert_not_called()


def test_delete_removes_every_version():
    storage = fake_storage(
        pending=[StoredObject(f"pending/{DOC_A}__a.pdf", at(8))],
        signed=[StoredObject(f"signed/{DOC_A}__b.pdf", at(9))],
    )
    service = DocumentService(storage)

    service.delete(service.get_existing_record(DOC_A))

    storage.remove.assert_called_once_with(
        [f"pending/{DOC_A}__a.pdf", f"signed/{DOC_A}__b.pdf", f"signed/{DOC_A}__b.pdf"]
    )
