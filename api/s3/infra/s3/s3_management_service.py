import re
import uuid
import boto3
from botocore.config import Config
from botocore.exceptions import ClientError
from typing import Any, Dict, List, Optional, Tuple
from dataclasses import dataclass, field
from datetime import datetime
from urllib.parse import unquote, urlsplit
import logging

from api.s3.config import s3_config
logger = logging.getLogger(__name__)

_MISSING_OBJECT_CODES = {"404", "NoSuchKey", "NotFound"}

# Virtual-hosted ("<bucket>.s3[.-<region>].amazonaws.com") and path-style ("s3[.-<region>].amazonaws.com") hosts
_S3_HOST_PATTERN = re.compile(
    r"^(?:(?P<bucket>[a-z0-9][a-z0-9.\-]*?)\.)?s3(?:[.\-](?P<region>[a-z0-9\-]+))?\.amazonaws\.com$"
)


class ObjectNotFoundError(Exception):
    """Raised when an object path or key does not resolve to a stored object."""

    def __init__(self, message: str = "Object not found"):
        super().__init__(message)


@dataclass
class S3ObjectMetadata:
    key: str
    content_length: int
    content_type: Optional[str]
    etag: str
    last_modified: Optional[datetime]
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass
class S3ObjectStream:
    key: str
    body: Any
    content_length: int
    content_type: Optional[str]
    etag: str
    last_modified: Optional[datetime]


@dataclass
class S3ListedObject:
    key: str
    size: int
    last_modified: Optional[datetime]


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


def is_missing_object_error(error: ClientError) -> bool:
    return _error_code(error) in _MISSING_OBJECT_CODES


class S3ManagementService:
    def __init__(self, client=None, bucket: Optional[str] = None):
        if client is None:
            boto_config = Config(
                connect_timeout=s3_config.connect_timeout_seconds,
                read_timeout=s3_config.read_timeout_seconds,
                retries={'max_attempts': s3_config.max_retries, 'mode': 'adaptive'}
            )
            client = boto3.client(
                's3',
                region_name=s3_config.aws_region,
                endpoint_url=s3_config.s3_endpoint_url,
                config=boto_config
            )
        self.client = client

        self.bucket = bucket or s3_config.s3_bucket
        self.region = s3_config.aws_region
        self.sse_algorithm = s3_config.sse_algorithm
        self.uploads_prefix = s3_config.uploads_prefix
        self.object_path_prefix = s3_config.object_path_prefix

    # ------------------------------------------------------------------
    # Signed URLs
    # ------------------------------------------------------------------

    def get_signed_upload_url(self, key: str, content_type: Optional[str] = None) -> str:
        try:
            return self.client.generate_presigned_url(
                'put_object',
                Params={
                    'Bucket': self.bucket,
                    'Key': key,
                    'ContentType': content_type or s3_config.default_content_type,
                    'ServerSideEncryption': self.sse_algorithm
                },
                ExpiresIn=s3_config.upload_url_ttl_seconds
            )
        except ClientError as e:
            logger.error(f"Failed to generate presigned upload URL for {key}: {e}")
            raise

    def get_signed_download_url(self, key: str, ttl_seconds: Optional[int] = None) -> str:
        if ttl_seconds is None:
            ttl_seconds = s3_config.download_url_ttl_seconds

        try:
            return self.client.generate_presigned_url(
                'get_object',
                Params={
                    'Bucket': self.bucket,
                    'Key': key
                },
                ExpiresIn=ttl_seconds
            )
        except ClientError as e:
            logger.error(f"Failed to generate presigned download URL for {key}: {e}")
            raise

    def get_object_entity_upload_url(self, content_type: Optional[str] = None) -> Tuple[str, str]:
        """Reserve a fresh key under the uploads prefix and sign a PUT for it."""
        key = f"{self.uploads_prefix}/{uuid.uuid4()}"
        upload_url = self.get_signed_upload_url(key, content_type)
        return upload_url, key

    def get_presigned_post(self, key: str, content_type: Optional[str] = None) -> Dict[str, Any]:
        content_type = content_type or s3_config.default_content_type
        try:
            return self.client.generate_presigned_post(
                Bucket=self.bucket,
                Key=key,
                Fields={'Content-Type': content_type},
                Conditions=[
                    {'Content-Type': content_type},
                    ['content-length-range', 0, s3_config.presigned_post_max_bytes],
                ],
                ExpiresIn=s3_config.presigned_post_ttl_seconds
            )
        except ClientError as e:
            logger.error(f"Failed to generate presigned POST for {key}: {e}")
            raise

    def get_public_url(self, key: str) -> str:
        return f"https://{self.bucket}.s3.amazonaws.com/{key}"

    # ------------------------------------------------------------------
    # Object operations
    # ------------------------------------------------------------------

    def head_object(self, key: str) -> S3ObjectMetadata:
        try:
            response = self.client.head_object(
                Bucket=self.bucket,
                Key=key
            )
        except ClientError as e:
            if is_missing_object_error(e):
                raise ObjectNotFoundError(f"Object {key} not found") from e
            logger.error(f"Failed to head object {key}: {e}")
            raise

        return S3ObjectMetadata(
            key=key,
            content_length=response.get('ContentLength', 0),
            content_type=response.get('ContentType'),
            etag=response.get('ETag', ''),
            last_modified=response.get('LastModified'),
            metadata=response.get('Metadata') or {}
        )

    def object_exists(self, key: str) -> bool:
        try:
            self.head_object(key)
            return True
        except ObjectNotFoundError:
            return False

    def get_object_stream(self, key: str) -> S3ObjectStream:
        try:
            response = self.client.get_object(
                Bucket=self.bucket,
                Key=key
            )
        except ClientError as e:
            if is_missing_object_error(e):
                raise ObjectNotFoundError(f"Object {key} not found") from e
            logger.error(f"Failed to get object from S3: {e}")
            raise

        return S3ObjectStream(
            key=key,
            body=response['Body'],
            content_length=response.get('ContentLength', 0),
            content_type=response.get('ContentType'),
            etag=response.get('ETag', ''),
            last_modified=response.get('LastModified')
        )

    def read_object_head(self, key: str, length: int) -> bytes:
        """Read the first ``length`` bytes of an object with a ranged GET."""
        try:
            response = self.client.get_object(
                Bucket=self.bucket,
                Key=key,
                Range=f"bytes=0-{max(length, 1) - 1}"
            )
        except ClientError as e:
            if is_missing_object_error(e):
                raise ObjectNotFoundError(f"Object {key} not found") from e
            if _error_code(e) == "InvalidRange":
                # Zero-byte object: no range is satisfiable
                return b""
            logger.error(f"Failed to read head of object {key}: {e}")
            raise

        body = response['Body']
        try:
            return body.read()
        finally:
            body.close()

    def delete_object(self, key: str) -> None:
        try:
            self.client.delete_object(
                Bucket=self.bucket,
                Key=key
            )
            logger.info(f"Deleted object s3://{self.bucket}/{key}")
        except ClientError as e:
            logger.error(f"Failed to delete object: {e}")
            raise

    def copy_object(self, source_key: str, destination_key: str) -> None:
        try:
            self.client.copy_object(
                Bucket=self.bucket,
                Key=destination_key,
                CopySource={'Bucket': self.bucket, 'Key': source_key},
                ServerSideEncryption=self.sse_algorithm
            )
            logger.info(f"Copied s3://{self.bucket}/{source_key} to s3://{self.bucket}/{destination_key}")
        except ClientError as e:
            if is_missing_object_error(e):
                raise ObjectNotFoundError(f"Object {source_key} not found") from e
            logger.error(f"Failed to copy object: {e}")
            raise

    def move_object(self, source_key: str, destination_key: str) -> None:
        self.copy_object(source_key, destination_key)
        self.delete_object(source_key)

    def list_objects(self, prefix: Optional[str] = None) -> List[S3ListedObject]:
        try:
            response = self.client.list_objects_v2(
                Bucket=self.bucket,
                Prefix=prefix or '',
                MaxKeys=s3_config.list_max_keys
            )
        except ClientError as e:
            logger.error(f"Failed to list objects with prefix={prefix!r}: {e}")
            raise

        return [
            S3ListedObject(
                key=obj.get('Key', ''),
                size=obj.get('Size', 0),
                last_modified=obj.get('LastModified')
            )
            for obj in response.get('Contents', [])
        ]

    # ------------------------------------------------------------------
    # Addressing: object keys <-> "/objects/<id>" paths
    # ------------------------------------------------------------------

    def normalize_object_path(self, raw_path: str) -> str:
        """Turn a full S3 URL into its object key; anything else is returned as-is."""
        if raw_path.startswith('https://'):
            return unquote(urlsplit(raw_path).path)[1:]
        return raw_path

    def _key_from_url(self, raw_url: str) -> Optional[str]:
        """Return the key a URL addresses inside this bucket, or None for foreign URLs."""
        parts = urlsplit(raw_url)
        host = (parts.hostname or '').lower()
        path = unquote(parts.path)

        if s3_config.s3_endpoint_url:
            endpoint_host = (urlsplit(s3_config.s3_endpoint_url).hostname or '').lower()
            if host == endpoint_host:
                return self._strip_bucket_segment(path)

        match = _S3_HOST_PATTERN.match(host)
        if not match:
            return None

        if match.group('bucket'):
            if match.group('bucket') != self.bucket:
                return None
            return path.lstrip('/')

        return self._strip_bucket_segment(path)

    def _strip_bucket_segment(self, path: str) -> Optional[str]:
        bucket_dir = f"/{self.bucket}/"
        if not path.startswith(bucket_dir):
            return None
        return path[len(bucket_dir):]

    def normalize_object_entity_path(self, raw_path: str) -> str:
        """
        Map anything that names an uploaded object to its "/objects/<id>" path.

        Accepts S3 URLs for this bucket (presigned or not), raw keys under the
        uploads prefix and already-normalized object paths. Inputs that do not
        address an uploaded object are returned unchanged.
        """
        if not raw_path or raw_path.startswith(self.object_path_prefix):
            return raw_path

        if raw_path.startswith(('https://', 'http://')):
            key = self._key_from_url(raw_path)
            if key is None:
                return raw_path
        else:
            key = raw_path.lstrip('/')

        uploads_dir = f"{self.uploads_prefix}/"
        if not key.startswith(uploads_dir):
            return raw_path

        entity_id = key[len(uploads_dir):]
        if not entity_id:
            return raw_path

        return f"{self.object_path_prefix}{entity_id}"

    def object_key_for_path(self, object_path: str) -> str:
        if not object_path or not object_path.startswith(self.object_path_prefix):
            raise ObjectNotFoundError(f"Not an object path: {object_path}")

        entity_id = object_path[len(self.object_path_prefix):]
        if not entity_id:
            raise ObjectNotFoundError(f"Object path has no id: {object_path}")

        return f"{self.uploads_prefix}/{entity_id}"

    def object_path_for_key(self, key: str) -> str:
        """Object path for a key; keys outside the uploads prefix are exposed verbatim."""
        object_path = self.normalize_object_entity_path(key)
        if object_path.startswith(self.object_path_prefix):
            return object_path
        return f"{self.object_path_prefix}{key.lstrip('/')}"

    def get_object_entity_file(self, object_path: str) -> S3ObjectMetadata:
        key = self.object_key_for_path(object_path)
        return self.head_object(key)
