from typing import BinaryIO
from minio import Minio
from busline.src.constants import (
    MINIO_HOST,
    MINIO_PASSWORD,
    MINIO_PORT,
    MINIO_PUBLIC_URL,
    MINIO_SECURE,
    MINIO_USERNAME,
)


def createClient() -> Minio:
    """
    Build a MinIO client from the environment configuration.

    The client is created per application by `createApp` and handed to the
    code that needs it; no request is made until the first call.
    """
    return Minio(
        endpoint=f"{MINIO_HOST}:{MINIO_PORT}",
        access_key=MINIO_USERNAME,
        secret_key=MINIO_PASSWORD,
        secure=MINIO_SECURE,
    )


def createBucket(client: Minio, bucketName: str) -> None:
    """
    Create a new bucket in MinIO.

    Args:
        client (Minio): The MinIO client.
        bucketName (str): The name of the bucket to create.

    Raises:
        S3Error: If the bucket cannot be created (e.g., already exists).
    """
    client.make_bucket(bucketName)


def deleteBucket(client: Minio, bucketName: str) -> None:
    """
    Delete a bucket and all its contents from MinIO.

    Args:
        client (Minio): The MinIO client.
        bucketName (str): The name of the bucket to delete.

    Note:
        This will remove all objects inside the bucket before deleting it.

    Raises:
        S3Error: If the bucket or objects cannot be deleted.
    """
    objectsInBucket = client.list_objects(bucketName)
    for object in objectsInBucket:
        client.remove_object(bucketName, object.object_name)
    client.remove_bucket(bucketName)


def uploadFile(
    client: Minio,
    bucketName: str,
    objectID: str,
    size: int,
    fileObject: BinaryIO,
    contentType: str = "application/octet-stream",
) -> None:
    """
    Upload a file to MinIO.

    Uploading to an existing objectID replaces the stored object.

    Args:
        client (Minio): The MinIO client.
        bucketName (str): The name of the bucket where the file will be stored.
        objectID (str): The unique identifier (key) for the object in MinIO.
        size (int): The size of the file in bytes.
        fileObject (BinaryIO): A file-like object containing the data to upload.
        contentType (str): MIME type stored with the object.

    Raises:
        S3Error: If the file cannot be uploaded.
    """
    client.put_object(bucketName, objectID, fileObject, size, content_type=contentType)


def objectURL(bucketName: str, objectID: str) -> str:
    """Public URL of an object, based on MINIO_PUBLIC_URL."""
    return f"{MINIO_PUBLIC_URL}/{bucketName}/{objectID}"
