"""S3-compatible object store implementation.

This module provides an S3-compatible store that works with AWS S3, MinIO,
and other S3-compatible object storage services.

Dependencies:
    - boto3
    - botocore
"""

from __future__ import annotations

import io
from typing import TYPE_CHECKING, Any, BinaryIO, Iterable, Iterator, Sequence

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from sss.infra.observability.metrics import UPLOADED_BYTES, observe
from sss.infra.storage.client import (
    CompletedPart,
    DeleteFailure,
    ListPage,
    MultipartUpload,
    ObjectHead,
    ObjectNotFoundError,
    ObjectSummary,
    Part,
    StorageError,
    WriteAttributes,
)

if TYPE_CHECKING:
    from sss.common.config import Settings

# The largest page S3 will return from a single list call.
LIST_MAX = 1000

_NOT_FOUND_CODES = frozenset({"NoSuchKey", "NoSuchUpload", "NotFound", "404"})
_INVALID_RANGE = "InvalidRange"
_DONE = object()


def _error_code(exc: Exception) -> str | None:
    if isinstance(exc, ClientError):
        code = exc.response.get("Error", {}).get("Code")
        return str(code) if code else ""
    return None


def _storage_error(exc: Exception, action: str, key: str) -> StorageError:
    code = _error_code(exc)
    if code in _NOT_FOUND_CODES:
        return ObjectNotFoundError(f"Failed to {action} {key!r}: not found", code=code)
    return StorageError(f"Failed to {action} {key!r}: {exc}", code=code)


def _write_params(attributes: WriteAttributes | None) -> dict[str, Any]:
    params: dict[str, Any] = {}
    if attributes is None:
        return params
    if attributes.content_type:
        params["ContentType"] = attributes.content_type
    if attributes.acl:
        params["ACL"] = attributes.acl
    if attributes.storage_class:
        params["StorageClass"] = attributes.storage_class
    if attributes.server_side_encryption:
        params["ServerSideEncryption"] = attributes.server_side_encryption
    if attributes.sse_kms_key_id:
        params["SSEKMSKeyId"] = attributes.sse_kms_key_id
    return params


class S3ObjectStore:
    """S3-compatible object store bound to a single bucket.

    Uses boto3 for all storage operations. Every call is attempted once;
    retries are left to botocore's own retry configuration.
    """

    def __init__(self, *, settings: "Settings", client: Any | None = None) -> None:
        """Initialize the store with configuration from settings.

        Args:
            settings: Settings containing the S3 configuration.
            client: Optional pre-built boto3 S3 client.
        """
        self._settings = settings
        self._bucket = settings.S3_BUCKET
        self._client = client if client is not None else self._build_client(settings)

    @property
    def bucket(self) -> str:
        return self._bucket

    @property
    def client(self) -> Any:
        """The underlying boto3 client, for operations this class doesn't cover."""
        return self._client

    @staticmethod
    def _build_client(settings: "Settings") -> Any:
        """Create a boto3 S3 client from settings."""
        config = Config(
            s3={
                "addressing_style": settings.S3_ADDRESSING_STYLE,
                "use_accelerate_endpoint": bool(settings.S3_USE_ACCELERATE),
                "use_dualstack_endpoint": bool(settings.S3_USE_DUALSTACK),
            },
            user_agent_extra=settings.S3_USER_AGENT or None,
        )

        params: dict[str, Any] = {
            "endpoint_url": settings.S3_ENDPOINT_URL,
            "region_name": settings.S3_REGION,
            "use_ssl": bool(settings.S3_USE_SSL),
            "config": config,
        }
        if settings.S3_ACCESS_KEY_ID and settings.S3_SECRET_ACCESS_KEY:
            params["aws_access_key_id"] = settings.S3_ACCESS_KEY_ID
            params["aws_secret_access_key"] = settings.S3_SECRET_ACCESS_KEY
            if settings.S3_SESSION_TOKEN:
                params["aws_session_token"] = settings.S3_SESSION_TOKEN

        return boto3.client("s3", **params)

    def _paginate(
        self, operation: str, key: str, pages: Iterable[dict[str, Any]]
    ) -> Iterator[dict[str, Any]]:
        iterator = iter(pages)
        while True:
            try:
                with observe(operation):
                    page = next(iterator, _DONE)
            except Exception as exc:
                action = operation.replace("_", " ")
                raise _storage_error(exc, action, key) from exc
            if page is _DONE:
                return
            yield page

    def create_multipart_upload(
        self,
        *,
        key: str,
        attributes: WriteAttributes | None = None,
        metadata: dict[str, str] | None = None,
    ) -> MultipartUpload:
        """Initialize a multipart upload session."""
        params: dict[str, Any] = {"Bucket": self._bucket, "Key": key}
        params.update(_write_params(attributes))
        if metadata:
            params["Metadata"] = metadata

        try:
            with observe("create_multipart_upload"):
                response = self._client.create_multipart_upload(**params)
        except Exception as exc:
            raise _storage_error(exc, "create multipart upload", key) from exc

        upload_id = response.get("UploadId")
        if not upload_id:
            raise StorageError("S3 response missing UploadId")

        return MultipartUpload(upload_id=str(upload_id), key=response.get("Key", key))

    def upload_part(
        self,
        *,
        key: str,
        upload_id: str,
        part_number: int,
        body: bytes,
    ) -> Part:
        """Upload one numbered part."""
        try:
            with observe("upload_part"):
                response = self._client.upload_part(
                    Bucket=self._bucket,
                    Key=key,
                    UploadId=upload_id,
                    PartNumber=int(part_number),
                    Body=body,
                )
        except Exception as exc:
            raise _storage_error(exc, "upload part", key) from exc

        UPLOADED_BYTES.inc(len(body))
        return Part(
            part_number=int(part_number),
            size=len(body),
            etag=str(response.get("ETag", "")),
        )

    def list_parts(self, *, key: str, upload_id: str) -> Iterator[Sequence[Part]]:
        """Yield pages of the parts recorded for an upload session."""
        paginator = self._client.get_paginator("list_parts")
        pages = paginator.paginate(Bucket=self._bucket, Key=key, UploadId=upload_id)
        for page in self._paginate("list_parts", key, pages):
            yield [
                Part(
                    part_number=int(item["PartNumber"]),
                    size=int(item.get("Size") or 0),
                    etag=str(item.get("ETag", "")),
                    last_modified=item.get("LastModified"),
                )
                for item in page.get("Parts") or ()
            ]

    def complete_multipart_upload(
        self,
        *,
        key: str,
        upload_id: str,
        parts: Sequence[CompletedPart],
        checksum_sha256: str | None = None,
    ) -> None:
        """Complete a multipart upload by combining all parts."""
        params: dict[str, Any] = {
            "Bucket": self._bucket,
            "Key": key,
            "UploadId": upload_id,
            "MultipartUpload": {
                "Parts": [
                    {"ETag": part.etag, "PartNumber": int(part.part_number)}
                    for part in sorted(parts, key=lambda p: p.part_number)
                ]
            },
        }
        if checksum_sha256:
            params["ChecksumSHA256"] = checksum_sha256

        try:
            with observe("complete_multipart_upload"):
                self._client.complete_multipart_upload(**params)
        except Exception as exc:
            raise _storage_error(exc, "complete multipart upload", key) from exc

    def abort_multipart_upload(self, *, key: str, upload_id: str) -> None:
        """Abort a multipart upload and clean up uploaded parts."""
        try:
            with observe("abort_multipart_upload"):
                self._client.abort_multipart_upload(
                    Bucket=self._bucket,
                    Key=key,
                    UploadId=upload_id,
                )
        except Exception as exc:
            raise _storage_error(exc, "abort multipart upload", key) from exc

    def list_multipart_uploads(
        self, *, prefix: str
    ) -> Iterator[Sequence[MultipartUpload]]:
        paginator = self._client.get_paginator("list_multipart_uploads")
        pages = paginator.paginate(Bucket=self._bucket, Prefix=prefix)
        for page in self._paginate("list_multipart_uploads", prefix, pages):
            yield [
                MultipartUpload(
                    upload_id=str(item["UploadId"]),
                    key=str(item["Key"]),
                    initiated=item.get("Initiated"),
                )
                for item in page.get("Uploads") or ()
            ]

    def list_objects(
        self,
        *,
        prefix: str,
        start_after: str | None = None,
        delimiter: str | None = None,
        max_keys: int | None = None,
    ) -> Iterator[ListPage]:
        params: dict[str, Any] = {"Bucket": self._bucket, "Prefix": prefix}
        if start_after:
            params["StartAfter"] = start_after
        if delimiter:
            params["Delimiter"] = delimiter
        params["PaginationConfig"] = {"PageSize": int(max_keys or LIST_MAX)}

        paginator = self._client.get_paginator("list_objects_v2")
        pages = paginator.paginate(**params)
        for page in self._paginate("list_objects", prefix, pages):
            yield ListPage(
                contents=[
                    ObjectSummary(
                        key=str(item["Key"]),
                        size=int(item.get("Size") or 0),
                        last_modified=item.get("LastModified"),
                        etag=item.get("ETag"),
                    )
                    for item in page.get("Contents") or ()
                ],
                common_prefixes=[
                    str(item["Prefix"]) for item in page.get("CommonPrefixes") or ()
                ],
                is_truncated=bool(page.get("IsTruncated")),
            )

    def put_object(
        self,
        *,
        key: str,
        body: bytes,
        attributes: WriteAttributes | None = None,
        checksum_sha256: str | None = None,
    ) -> None:
        params: dict[str, Any] = {"Bucket": self._bucket, "Key": key, "Body": body}
        params.update(_write_params(attributes))
        if checksum_sha256:
            params["ChecksumSHA256"] = checksum_sha256

        try:
            with observe("put_object"):
                self._client.put_object(**params)
        except Exception as exc:
            raise _storage_error(exc, "put object", key) from exc

    def get_object(
        self,
        *,
        key: str,
        offset: int = 0,
        limit: int | None = None,
    ) -> BinaryIO:
        params: dict[str, Any] = {"Bucket": self._bucket, "Key": key}
        if limit is not None:
            params["Range"] = f"bytes={int(offset)}-{int(offset) + int(limit) - 1}"
        elif offset > 0:
            params["Range"] = f"bytes={int(offset)}-"

        try:
            with observe("get_object"):
                response = self._client.get_object(**params)
        except Exception as exc:
            if _error_code(exc) == _INVALID_RANGE:
                return io.BytesIO(b"")
            raise _storage_error(exc, "get object", key) from exc
        return response["Body"]

    def delete_object(self, *, key: str) -> None:
        """Delete an object from storage."""
        try:
            with observe("delete_object"):
                self._client.delete_object(Bucket=self._bucket, Key=key)
        except Exception as exc:
            raise _storage_error(exc, "delete object", key) from exc

    def delete_objects(self, *, keys: Sequence[str]) -> list[DeleteFailure]:
        if not keys:
            return []
        try:
            with observe("delete_objects"):
                response = self._client.delete_objects(
                    Bucket=self._bucket,
                    Delete={
                        "Objects": [{"Key": key} for key in keys],
                        "Quiet": False,
                    },
                )
        except Exception as exc:
            raise _storage_error(exc, "delete objects", keys[0]) from exc

        return [
            DeleteFailure(
                key=str(item.get("Key", "")),
                code=str(item.get("Code", "")),
                message=str(item.get("Message", "")),
            )
            for item in response.get("Errors") or ()
        ]

    def head_object(self, *, key: str) -> ObjectHead:
        """Get object metadata without downloading the content."""
        try:
            with observe("head_object"):
                response = self._client.head_object(Bucket=self._bucket, Key=key)
        except Exception as exc:
            raise _storage_error(exc, "get object metadata", key) from exc

        size = response.get("ContentLength")
        expires = response.get("ExpiresString") or response.get("Expires")
        return ObjectHead(
            size_bytes=int(size) if size is not None else 0,
            etag=response.get("ETag"),
            content_type=response.get("ContentType"),
            last_modified=response.get("LastModified"),
            accept_ranges=response.get("AcceptRanges"),
            expires=str(expires) if expires is not None else None,
        )

    def copy_object(
        self,
        *,
        source_key: str,
        dest_key: str,
        attributes: WriteAttributes | None = None,
    ) -> None:
        params: dict[str, Any] = {
            "Bucket": self._bucket,
            "Key": dest_key,
            "CopySource": {"Bucket": self._bucket, "Key": source_key},
        }
        params.update(_write_params(attributes))
        # ContentType is only honoured with a REPLACE directive, which would drop
        # the source metadata.
        params.pop("ContentType", None)

        try:
            with observe("copy_object"):
                self._client.copy_object(**params)
        except Exception as exc:
            raise _storage_error(exc, "copy object", source_key) from exc
