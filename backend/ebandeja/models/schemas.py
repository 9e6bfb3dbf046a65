"""
Esquemas (schemas) de datos de la API, definidos con Pydantic.

Son el "contrato" entre el navegador y el backend: FastAPI los usa para
validar lo que entra, serializar lo que sale y documentar todo en /docs.

Los nombres de campo en JSON siguen la convencion del frontend (camelCase:
createdAt, fileUrl). En Python usamos snake_case y declaramos el nombre JSON
con `alias`; `populate_by_name=True` permite construir el modelo con
cualquiera de los dos nombres.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class LoginRequest(BaseModel):
    """
    Cuerpo de POST /api/auth/login.

    Atributos:
        password (Any): Contrasena compartida. Si falta o no es texto (null,
            numero, lista) se toma como cadena vacia y el login falla con
            401, contando como intento fallido.
    """
    password: Any = ""


class AuthStatusResponse(BaseModel):
    authenticated: bool


class OkResponse(BaseModel):
    ok: bool = True


class DocumentOut(BaseModel):
    """
    Un documento tal como lo ve el navegador.

    Atributos:
        id (str): Identificador (UUID v4).
        name (str): Nombre visible, ya sanitizado (ej: "derecho.pdf").
        type (str): Extension: "pdf" o "docx".
        status (str): "Pendiente" o "Firmado".
        created_at (str): Fecha ISO-8601 de la version mostrada.
        file_url (str): URL firmada, valida por tiempo limitado, para
            descargar o previsualizar el archivo directamente del bucket.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    type: str
    status: str
    created_at: str = Field(alias="createdAt")
    file_url: str = Field(alias="fileUrl")


class DocumentListResponse(BaseModel):
    documents: list[DocumentOut]


class DocumentResponse(BaseModel):
    document: DocumentOut


class ErrorResponse(BaseModel):
    """
    Forma unica de TODAS las respuestas de error de la API.

    Atributos:
        error (str): Mensaje legible para el usuario, ej:
            "Formato invalido. Solo se permiten PDF y DOCX."
    """
    error: str
