"""
Modulo de servicio para el almacenamiento de objetos (Amazon S3 o compatible).

Este modulo encapsula TODA la comunicacion con el bucket. Ningun otro archivo
del proyecto llama directamente a boto3; todo pasa por StorageService. Asi,
para testear el resto del codigo basta con reemplazar este servicio (o darle
un cliente de moto).

Operaciones que necesita E-Bandeja
----------------------------------
- **list_folder:** listar los objetos bajo un prefijo ("pending/" o
  "signed/"). Usamos un paginator porque list_objects_v2 retorna como
  maximo 1000 objetos por llamada.
- **upload:** subir un archivo (put_object). Si la key ya existe, S3 la
  sobrescribe, que es lo que queremos al re-firmar.
- **remove:** borrar varias keys en una sola peticion (delete_objects).
- **signed_url:** generar una URL firmada de solo lectura con vencimiento.
  El navegador descarga el archivo directamente del bucket con esa URL,
  sin pasar por nuestro servidor y sin credenciales propias.
- **ensure_bucket:** crear el bucket al arrancar si todavia no existe.

Manejo de errores
-----------------
boto3 lanza botocore.exceptions.ClientError (el servicio respondio con un
error: permisos, bucket inexistente, etc.) o BotoCoreError (fallo de red,
credenciales ausentes, etc.). Los envolvemos en StorageError para que el
handler responda HTTP 500 con un mensaje generico, sin filtrar detalles
internos al cliente.
"""

from dataclasses import dataclass
from datetime import datetime

import boto3
from botocore.exceptions import BotoCoreError, ClientError

import structlog

from ebandeja.config import settings
from ebandeja.errors import StorageError

logger = structlog.get_logger(__name__)


@dataclass
class StoredObject:
    """Un objeto listado del bucket: su key completa y su fecha de modificacion."""

    key: str
    last_modified: datetime


class StorageService:
    """
    Servicio que encapsula todas las operaciones con el bucket.

    Atributos:
        client: Cliente de boto3 para S3.
        bucket (str): Nombre del bucket donde se guardan los documentos.
    """

    def __init__(self, client=None, bucket: str | None = None):
        # Igual que siempre: si no nos pasan un cliente, creamos uno real.
        # En tests se pasa un cliente creado dentro de mock_aws().
        self.client = client or boto3.client(
            "s3",
            region_name=settings.AWS_REGION,
            endpoint_url=settings.S3_ENDPOINT_URL,
        )
        self.bucket = bucket or settings.S3_BUCKET

    def list_folder(self, prefix: str) -> list[StoredObject]:
        """
        Lista TODOS los objetos cuya key empieza con "{prefix}/".

        Retorna:
            list[StoredObject]: Objetos encontrados, en el orden de S3
                (alfabetico por key).
        """
        objects = []
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=f"{prefix}/"):
                for obj in page.get("Contents", []):
                    objects.append(StoredObject(key=obj["Key"], last_modified=obj["LastModified"]))
        except (ClientError, BotoCoreError) as e:
            logger.error("storage_list_failed", prefix=prefix, error=str(e))
            raise StorageError("No se pudo listar archivos en el almacenamiento.") from e
        return objects

    def upload(self, key: str, data: bytes, content_type: str | None = None) -> str:
        """
        Sube `data` bajo `key` (sobrescribe si ya existe).

        Parametros:
            key (str): Ruta completa del objeto, ej: "pending/abc__borrador.pdf".
            data (bytes): Contenido del archivo.
            content_type (str | None): Tipo MIME que S3 devolvera al
                descargar el objeto (el navegador lo usa para decidir si
                mostrar un PDF en linea).

        Retorna:
            str: La misma key, para encadenar.
        """
        params = {"Bucket": self.bucket, "Key": key, "Body": data}
        if content_type:
            params["ContentType"] = content_type

        try:
            self.client.put_object(**params)
        except (ClientError, BotoCoreError) as e:
            logger.error("storage_upload_failed", key=key, error=str(e))
            raise StorageError("No se pudo subir el archivo al almacenamiento.") from e
        return key

    def remove(self, keys: list[str | None]) -> None:
        """
        Elimina varias keys en una sola peticion.

        Ignora valores vacios y duplicados; si no queda ninguna key no hace
        ninguna llamada. Borrar una key inexistente no es un error en S3.
        """
        # dict.fromkeys conserva el orden y elimina duplicados
        unique_keys = list(dict.fromkeys(k for k in keys if k))
        if not unique_keys:
            return

        try:
            response = self.client.delete_objects(
                Bucket=self.bucket,
                Delete={"Objects": [{"Key": k} for k in unique_keys], "Quiet": True},
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("storage_remove_failed", keys=unique_keys, error=str(e))
            raise StorageError("No se pudo eliminar el archivo en el almacenamiento.") from e

        # delete_objects responde 200 aunque falle el borrado de alguna key;
        # los fallos individuales vienen en "Errors".
        if response.get("Errors"):
            logger.error("storage_remove_partial_failure", errors=response["Errors"])
            raise StorageError("No se pudo eliminar el archivo en el almacenamiento.")

    def signed_url(self, key: str, expires_in: int = settings.FILE_URL_TTL_SECONDS) -> str:
        """
        Genera una URL firmada (presigned URL) de lectura para `key`.

        La firma se calcula localmente con las credenciales del cliente; no
        hay peticion HTTP. Quien tenga la URL puede descargar ESE objeto
        hasta que venza (`expires_in` segundos).
        """
        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("storage_presign_failed", key=key, error=str(e))
            raise StorageError("No se pudo generar URL firmada para el archivo.") from e

    def ensure_bucket(self) -> None:
        """Crea el bucket si no existe. Se llama una vez al arrancar la app."""
        try:
            self.client.head_bucket(Bucket=self.bucket)
            return
        except ClientError as e:
            # 404 / NoSuchBucket = no existe, lo creamos. Cualquier otro
            # codigo (ej: 403 sin permisos) es un error real.
            code = e.response.get("Error", {}).get("Code", "")
            if code not in ("404", "NoSuchBucket", "NotFound"):
                raise StorageError("No se pudo validar el bucket de almacenamiento.") from e
        except BotoCoreError as e:
            raise StorageError("No se pudo validar el bucket de almacenamiento.") from e

        params = {"Bucket": self.bucket}
        # us-east-1 es la region por defecto y NO acepta LocationConstraint
        if settings.AWS_REGION != "us-east-1":
            params["CreateBucketConfiguration"] = {"LocationConstraint": settings.AWS_REGION}

        try:
            self.client.create_bucket(**params)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            # Otra instancia pudo crearlo entre el head_bucket y aqui
            if code not in ("BucketAlreadyOwnedByYou", "BucketAlreadyExists"):
                raise StorageError("No se pudo crear el bucket de almacenamiento.") from e
        else:
            logger.info("storage_bucket_created", bucket=self.bucket)


storage_service = StorageService()
