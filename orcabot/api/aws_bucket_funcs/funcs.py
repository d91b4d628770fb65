"""
S3 Utilities — Client Init • Media Upload • Presigned Download
==============================================================

Purpose
-------
Small helper module for the visit-media bucket:
- Initialize an S3 client with Signature V4
- Upload a file object with its content type
- Generate presigned GET URLs (media is never exposed through public URLs)

Configuration (from `orcabot.database.config.config.settings`)
--------------------------------------------------------------
- AWS_ACCESS_KEY     : Access key ID
- AWS_SECRET_KEY     : Secret access key
- REGION             : AWS region (e.g., "sa-east-1")
- BUCKET_NAME        : Media bucket
- SIGNED_URL_EXPIRES : Presigned URL lifetime in seconds
"""

import logging
from typing import BinaryIO, Optional

import boto3
import botocore
from botocore.exceptions import BotoCoreError, ClientError

from orcabot.database.config.config import settings

logger = logging.getLogger(__name__)


def get_client():
    """
    Initialize and return a low-level S3 client configured for Signature V4.

    Returns:
        botocore.client.S3: An S3 client ready for object operations.

    Raises:
        botocore.exceptions.NoCredentialsError
        botocore.exceptions.PartialCredentialsError
    """
    return boto3.client(
        's3',
        aws_access_key_id=settings.AWS_ACCESS_KEY,
        aws_secret_access_key=settings.AWS_SECRET_KEY,
        region_name=settings.REGION,
        config=botocore.config.Config(signature_version="s3v4"),
    )


def upload(fileobj: BinaryIO, key: str, s3_client, content_type: Optional[str] = None, filename: Optional[str] = None):
    """
    Upload a file object to the media bucket.

    Args:
        fileobj (BinaryIO): Readable binary stream (e.g., `UploadFile.file`).
        key (str): Object key (destination path in the bucket).
        s3_client (botocore.client.S3): Client returned by `get_client()`.
        content_type (str, optional): MIME type stored with the object.
        filename (str, optional): Original filename, kept as inline disposition.

    Raises:
        botocore.exceptions.ClientError on storage failure.
    """
    extra = {"ContentType": content_type or "application/octet-stream"}
    if filename:
        extra["ContentDisposition"] = f'inline; filename="{filename}"'
    fileobj.seek(0)
    s3_client.upload_fileobj(fileobj, settings.BUCKET_NAME, key, ExtraArgs=extra)


def download(key: str, s3_client, expires: Optional[int] = None) -> str:
    """
    Generate a presigned URL for downloading an object.

    Args:
        key (str): Object key in the bucket.
        s3_client (botocore.client.S3): Client returned by `get_client()`.
        expires (int, optional): URL lifetime in seconds (default: settings.SIGNED_URL_EXPIRES).

    Returns:
        str: A presigned URL that allows temporary GET access.
    """
    return s3_client.generate_presigned_url(
        'get_object',
        Params={'Bucket': settings.BUCKET_NAME, 'Key': key},
        ExpiresIn=expires or settings.SIGNED_URL_EXPIRES,
    )


def presign_media(midias: list[dict], s3_client) -> list[dict]:
    """
    Resolve media records to ``{"nome", "url"}`` pairs.

    A record that cannot be signed is logged and left out.
    """
    signed = []
    for midia in midias:
        try:
            signed.append({"nome": midia["nome_arquivo"], "url": download(midia["arquivo_url"], s3_client)})
        except (BotoCoreError, ClientError) as e:
            logger.warning(f"Could not sign media {midia['arquivo_url']}: {e}")
    return signed
