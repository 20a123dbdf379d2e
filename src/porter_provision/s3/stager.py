"""Content-addressed, idempotent staging of blobs in S3.

An object's key ends with the SHA-256 of its content, so an object that is
already present under its key never needs to be uploaded again.
"""
import io
import os
import logging
from pathlib import Path
from typing import IO, Any, Dict, Optional, Union

from boto3.exceptions import S3UploadFailedError
from boto3.s3.transfer import TransferConfig
from botocore.exceptions import BotoCoreError, ClientError

from porter_provision.config.settings import get_settings
from porter_provision.errors import (
    LocalIOError,
    ObjectNotFound,
    PermissionDenied,
    ProbeError,
    ProvisionError,
    UploadError,
)
from porter_provision.models import StagedObject
from porter_provision.utils.hashing import sha256_bytes, spool_file

try:
    from mypy_boto3_s3 import S3Client
except ImportError:
    ...

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}
FORBIDDEN_CODES = {"403", "Forbidden", "AccessDenied"}


def staged_key(key_prefix: str, digest: str, extension: str = "") -> str:
    """Storage key ``<key_prefix>/<digest><extension>``."""
    return f"{key_prefix.rstrip('/')}/{digest}{extension}"


def object_url(bucket: str, key: str, url_base: Optional[str] = None) -> str:
    """Public URL of a staged object, as CloudFormation's TemplateURL expects it."""
    url_base = (url_base or get_settings().s3_url_base).rstrip('/')
    return f"{url_base}/{bucket}/{key}"


def transfer_config() -> TransferConfig:
    """Multipart transfer settings; parallelism follows the host's CPUs."""
    return TransferConfig(max_concurrency=os.cpu_count() or 1, use_threads=True)


class ContentAddressedStager:
    """Stage immutable blobs in S3 keyed by their content digest."""

    def __init__(self, s3_client: "S3Client", config: Optional[TransferConfig] = None):
        self.s3_client = s3_client
        self.config = config or transfer_config()

    def stage_bytes(self, data: bytes, bucket: str, key_prefix: str,
                    extension: str = "", **upload_options) -> Optional[StagedObject]:
        """Stage ``data`` under ``<key_prefix>/<sha256(data)><extension>``.

        :param upload_options: ``content_type``, ``content_encoding``,
            ``storage_class`` and ``sse_kms_key_id``.
        :return: the staged object, or None if staging failed.
        """
        digest = sha256_bytes(data)
        with io.BytesIO(data) as body:
            return self._stage(body, digest, bucket, key_prefix, extension, upload_options)

    def stage_file(self, path: Union[str, Path], bucket: str, key_prefix: str,
                   extension: str = "", **upload_options) -> Optional[StagedObject]:
        """Stage the file at ``path``.

        The file is read exactly once: the upload streams from the spooled copy
        that was digested, never from ``path`` itself.
        """
        try:
            body, digest = spool_file(path)
        except LocalIOError as e:
            logger.error(f"Digest failed: {e}")
            return None
        with body:
            return self._stage(body, digest, bucket, key_prefix, extension, upload_options)

    def _stage(self, body: IO[bytes], digest: str, bucket: str, key_prefix: str,
               extension: str, upload_options: Dict[str, Any]) -> Optional[StagedObject]:
        key = staged_key(key_prefix, digest, extension)
        try:
            if self.exists(bucket, key):
                logger.info(f"Already staged: s3://{bucket}/{key}")
                return StagedObject(bucket=bucket, key=key, digest=digest)
            self.upload(body, bucket, key, **upload_options)
        except PermissionDenied as e:
            logger.error(f"HeadObject s3://{bucket}/{key} forbidden: {e.cause}")
            logger.error("s3:GetObject and s3:ListBucket are needed for this operation to work")
            return None
        except ProvisionError as e:
            logger.error(f"Staging s3://{bucket}/{key} failed: {e}")
            return None

        return StagedObject(bucket=bucket, key=key, digest=digest)

    def exists(self, bucket: str, key: str) -> bool:
        """Probe for a non-empty object at ``key``.

        :raises PermissionDenied: if the probe is forbidden.
        :raises ProbeError: on any other failure than "not found".
        """
        try:
            response = self.s3_client.head_object(Bucket=bucket, Key=key)
        except ClientError as e:
            probe_error = classify_probe_error(e)
            if isinstance(probe_error, ObjectNotFound):
                return False
            raise probe_error from e
        except BotoCoreError as e:
            raise ProbeError("HeadObject", e) from e

        if response.get('ContentLength', 0) > 0:
            return True
        logger.warning(f"Staged object s3://{bucket}/{key} is empty, uploading again")
        return False

    def upload(self, body: IO[bytes], bucket: str, key: str,
               content_type: Optional[str] = None,
               content_encoding: Optional[str] = None,
               storage_class: Optional[str] = None,
               sse_kms_key_id: Optional[str] = None) -> None:
        """Upload ``body`` with multipart transfer.

        :raises UploadError: on any S3 or transport failure.
        """
        extra_args = {}
        if content_type:
            extra_args['ContentType'] = content_type
        if content_encoding:
            extra_args['ContentEncoding'] = content_encoding
        if storage_class:
            extra_args['StorageClass'] = storage_class
        if sse_kms_key_id:
            extra_args['ServerSideEncryption'] = 'aws:kms'
            extra_args['SSEKMSKeyId'] = sse_kms_key_id

        logger.info(f"Uploading s3://{bucket}/{key} (concurrency {self.config.max_concurrency})")
        try:
            self.s3_client.upload_fileobj(body, bucket, key,
                                          ExtraArgs=extra_args, Config=self.config)
        except (ClientError, BotoCoreError, S3UploadFailedError) as e:
            raise UploadError("Upload", e) from e
        except OSError as e:
            raise LocalIOError(f"read body for {key}", e) from e


def classify_probe_error(error: ClientError) -> ProbeError:
    """Map a HeadObject error onto not found, forbidden or other."""
    code = str(error.response.get('Error', {}).get('Code', ''))
    if code in NOT_FOUND_CODES:
        return ObjectNotFound("HeadObject", error)
    if code in FORBIDDEN_CODES:
        return PermissionDenied("HeadObject", error)
    return ProbeError("HeadObject", error)
