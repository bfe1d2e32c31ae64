import os
from typing import Optional


class S3Config:
    def __init__(self):
        self.aws_region: str = os.getenv("AWS_REGION", "us-east-1")
        self.s3_bucket: str = os.getenv("S3_BUCKET_NAME", "filevault-uploads")
        self.s3_endpoint_url: Optional[str] = os.getenv("S3_ENDPOINT_URL")

        # Uploaded objects live under "<uploads_prefix>/<id>" and are exposed as "/objects/<id>"
        self.uploads_prefix: str = os.getenv("S3_UPLOADS_PREFIX", "uploads").strip("/")
        self.object_path_prefix: str = "/objects/"

        self.upload_url_ttl_seconds: int = 900
        self.download_url_ttl_seconds: int = 3600
        self.presigned_post_ttl_seconds: int = 900
        self.presigned_post_max_bytes: int = 10 * 1024 * 1024

        self.default_content_type: str = "application/octet-stream"
        self.sse_algorithm: str = "AES256"
        self.list_max_keys: int = 1000

        self.connect_timeout_seconds: int = 10
        self.read_timeout_seconds: int = 300
        self.max_retries: int = 3


s3_config = S3Config()


class Constants:
    FILE_CATEGORY_ALL = "All Files"
    FILE_CATEGORIES = {
        "Documents": [
            "application/pdf",
            "application/msword",
            "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        ],
        "Images": ["image/jpeg", "image/png", "image/gif", "image/webp"],
        "Videos": ["video/mp4", "video/avi", "video/mov", "video/wmv"],
    }
    ROOT_FOLDER_ID = "root"
    STREAM_CHUNK_BYTES = 1024 * 1024
