# SPDX-FileCopyrightText: Copyright (c) 2024-2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""S3/MinIO object store for voice-note audio with async upload support."""
import logging
from typing import Optional

import aioboto3
import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from voice_notes.exceptions import StorageError

logger = logging.getLogger(__name__)


class S3StorageManager:
    """S3-based object store for MinIO or AWS S3 with async operations."""

    def __init__(
        self,
        bucket_name: str,
        endpoint_url: Optional[str] = None,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        region: str = "us-east-1",
        use_ssl: bool = True,
        chunk_size: int = 5 * 1024 * 1024,  # 5MB default
        ensure_bucket: bool = True,
    ):
        """
        Initialize S3 storage manager.

        Args:
            bucket_name: S3 bucket name
            endpoint_url: MinIO/S3 endpoint (e.g., 'http://minio:9000' for MinIO)
            access_key: Access key ID
            secret_key: Secret access key
            region: AWS region
            use_ssl: Whether to use SSL/TLS
            chunk_size: Size of chunks for multipart upload (default: 5MB)
            ensure_bucket: Create the bucket at startup if missing
        """
        self.bucket_name = bucket_name
        self.region = region
        self.endpoint_url = endpoint_url
        self.access_key = access_key
        self.secret_key = secret_key
        self.use_ssl = use_ssl
        self.chunk_size = chunk_size

        self.session = aioboto3.Session()

        self.config = Config(
            signature_version="s3v4",
            retries={"max_attempts": 3, "mode": "adaptive"},
            max_pool_connections=50,
            connect_timeout=10,
            read_timeout=60,
        )

        if ensure_bucket:
            self._ensure_bucket_exists(self._sync_client())

    def _sync_client(self):
        return boto3.client(
            "s3",
            endpoint_url=self.endpoint_url,
            aws_access_key_id=self.access_key,
            aws_secret_access_key=self.secret_key,
            region_name=self.region,
            config=Config(signature_version="s3v4"),
            use_ssl=self.use_ssl,
        )

    def _client(self):
        return self.session.client(
            "s3",
            endpoint_url=self.endpoint_url,
            aws_access_key_id=self.access_key,
            aws_secret_access_key=self.secret_key,
            region_name=self.region,
            use_ssl=self.use_ssl,
            config=self.config,
        )

    def _ensure_bucket_exists(self, s3_client):
        """Create bucket if it doesn't exist (synchronous, called once at init)."""
        try:
            s3_client.head_bucket(Bucket=self.bucket_name)
        except ClientError as e:
            error_code = e.response["Error"]["Code"]
            if error_code != "404":
                logger.error(f"Error checking bucket: {e}")
                return
            try:
                if self.region == "us-east-1":
                    s3_client.create_bucket(Bucket=self.bucket_name)
                else:
                    s3_client.create_bucket(
                        Bucket=self.bucket_name,
                        CreateBucketConfiguration={"LocationConstraint": self.region},
                    )
                logger.info(f"Created bucket: {self.bucket_name}")
            except ClientError as create_error:
                logger.error(f"Error creating bucket: {create_error}")

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        """
        Upload a blob, using multipart upload for large payloads.

        Args:
            key: Object key
            data: Blob content
            content_type: MIME type stored with the object

        Raises:
            StorageError: If the upload fails
        """
        try:
            async with self._client() as s3_client:
                if len(data) < self.chunk_size:
                    await s3_client.put_object(
                        Bucket=self.bucket_name,
                        Key=key,
                        Body=data,
                        ContentType=content_type,
                    )
                    logger.info(f"Uploaded object directly: {key} ({len(data)} bytes)")
                else:
                    await self._multipart_upload(s3_client, data, key, content_type)
                    logger.info(f"Uploaded object via multipart: {key} ({len(data)} bytes)")
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error uploading {key} to S3: {e}")
            raise StorageError(f"Error uploading {key}: {e}") from e

    async def _multipart_upload(self, s3_client, data: bytes, key: str, content_type: str):
        """Upload large blobs in parts, aborting the upload on any failure."""
        response = await s3_client.create_multipart_upload(
            Bucket=self.bucket_name,
            Key=key,
            ContentType=content_type,
        )
        upload_id = response["UploadId"]

        parts = []
        try:
            for part_number, offset in enumerate(range(0, len(data), self.chunk_size), start=1):
                part_response = await s3_client.upload_part(
                    Bucket=self.bucket_name,
                    Key=key,
                    PartNumber=part_number,
                    UploadId=upload_id,
                    Body=data[offset : offset + self.chunk_size],
                )
                parts.append({"PartNumber": part_number, "ETag": part_response["ETag"]})
                logger.debug(f"Uploaded part {part_number} for {key}")

            await s3_client.complete_multipart_upload(
                Bucket=self.bucket_name,
                Key=key,
                UploadId=upload_id,
                MultipartUpload={"Parts": parts},
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Multipart upload failed for {key}: {e}")
            try:
                await s3_client.abort_multipart_upload(
                    Bucket=self.bucket_name, Key=key, UploadId=upload_id
                )
                logger.info(f"Aborted multipart upload for {key}")
            except (ClientError, BotoCoreError) as abort_error:
                logger.error(f"Failed to abort multipart upload: {abort_error}")
            raise

    async def get(self, key: str) -> bytes:
        """
        Read a blob.

        Raises:
            StorageError: If the object is missing or unreadable
        """
        try:
            async with self._client() as s3_client:
                response = await s3_client.get_object(Bucket=self.bucket_name, Key=key)
                async with response["Body"] as stream:
                    content = await stream.read()
            logger.debug(f"Read {len(content)} bytes from {key}")
            return content
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error reading {key} from S3: {e}")
            raise StorageError(f"Error reading {key}: {e}") from e

    async def remove(self, key: str) -> None:
        """
        Delete a blob.

        Raises:
            StorageError: If the delete call fails
        """
        try:
            async with self._client() as s3_client:
                await s3_client.delete_object(Bucket=self.bucket_name, Key=key)
            logger.info(f"Deleted object: {key}")
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error deleting {key} from S3: {e}")
            raise StorageError(f"Error deleting {key}: {e}") from e

    async def exists(self, key: str) -> bool:
        """Check if a blob exists."""
        try:
            async with self._client() as s3_client:
                await s3_client.head_object(Bucket=self.bucket_name, Key=key)
            return True
        except ClientError:
            return False

    def presign(self, key: str, ttl: int = 3600) -> str:
        """
        Generate a presigned GET URL.

        Synchronous: signing is local and needs no round trip.

        Args:
            key: Object key
            ttl: URL lifetime in seconds

        Returns:
            Presigned URL
        """
        try:
            url = self._sync_client().generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket_name, "Key": key},
                ExpiresIn=ttl,
            )
            logger.debug(f"Generated presigned URL for {key}")
            return url
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error generating presigned URL: {e}")
            raise StorageError(f"Error generating presigned URL for {key}: {e}") from e
