import math
import os
import re
import secrets
import time
from dataclasses import dataclass, field
from typing import List, Optional


ALLOWED_MIME_TYPES = frozenset([
    # Images
    'image/jpeg',
    'image/jpg',
    'image/png',
    'image/gif',
    'image/webp',
    'image/svg+xml',
    'image/bmp',
    'image/tiff',

    # Documents
    'application/pdf',
    'application/msword',
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
    'application/vnd.ms-excel',
    'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
    'application/vnd.ms-powerpoint',
    'application/vnd.openxmlformats-officedocument.presentationml.presentation',
    'text/plain',
    'text/csv',
    'application/rtf',

    # Archives
    'application/zip',
    'application/x-rar-compressed',
    'application/x-7z-compressed',
    'application/gzip',
    'application/x-tar',

    # Audio
    'audio/mpeg',
    'audio/wav',
    'audio/mp4',
    'audio/aac',
    'audio/ogg',
    'audio/flac',

    # Video
    'video/mp4',
    'video/mpeg',
    'video/quicktime',
    'video/x-msvideo',
    'video/webm',
    'video/ogg',

    # Code and text
    'application/json',
    'application/xml',
    'text/html',
    'text/css',
    'text/javascript',
    'application/javascript',
    'text/markdown',

    # 3D models (.fbx, .obj, .dae and friends arrive as octet-stream)
    'application/octet-stream',
    'model/gltf+json',
    'model/gltf-binary',
    'application/x-blender',
])

ALLOWED_EXTENSIONS = frozenset([
    '.jpg', '.jpeg', '.png', '.gif', '.webp', '.svg', '.bmp', '.tiff',
    '.pdf', '.doc', '.docx', '.xls', '.xlsx', '.ppt', '.pptx', '.txt', '.csv', '.rtf',
    '.zip', '.rar', '.7z', '.gz', '.tar',
    '.mp3', '.wav', '.m4a', '.aac', '.ogg', '.flac',
    '.mp4', '.mpeg', '.mov', '.avi', '.webm', '.ogv',
    '.json', '.xml', '.html', '.css', '.js', '.md',
    '.fbx', '.obj', '.dae', '.3ds', '.ply', '.stl', '.x3d', '.gltf', '.glb', '.blend',
])

MB = 1024 * 1024

# First matching prefix wins
FILE_SIZE_LIMITS = [
    ('image/', 10 * MB),
    ('video/', 100 * MB),
    ('audio/', 50 * MB),
    ('application/pdf', 20 * MB),
    ('application/octet-stream', 200 * MB),
    ('model/', 200 * MB),
]
DEFAULT_SIZE_LIMIT = 25 * MB

DANGEROUS_SIGNATURES = [
    b'MZ',          # PE/EXE
    b'\x7fELF',
    b'<script',
    b'<html',
    b'<?php',
]

MIME_SIGNATURES = [
    ('image/jpeg', b'\xff\xd8\xff'),
    ('image/png', b'\x89PNG'),
    ('image/gif', b'GIF'),
    ('image/webp', b'RIFF'),
    ('application/pdf', b'%PDF'),
    ('application/zip', b'PK\x03\x04'),
    ('audio/mpeg', b'\xff\xfb'),
    ('video/mp4', b'\x00\x00\x00\x18ftyp'),
]

FLEXIBLE_MIME_GROUPS = [
    {'image/jpeg', 'image/jpg'},
    {'application/javascript', 'text/javascript'},
    {'application/xml', 'text/xml'},
    # RIFF containers
    {'image/webp', 'audio/wav', 'video/x-msvideo', 'video/avi'},
    # OpenXML office documents are zip archives
    {
        'application/zip',
        'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
        'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
        'application/vnd.openxmlformats-officedocument.presentationml.presentation',
    },
]

IMAGE_SCRIPT_PATTERNS = [
    re.compile(r'<script[\s\S]*?>[\s\S]*?</script>', re.IGNORECASE),
    re.compile(r'javascript:', re.IGNORECASE),
    re.compile(r'vbscript:', re.IGNORECASE),
    re.compile(r'onload\s*=', re.IGNORECASE),
    re.compile(r'onerror\s*=', re.IGNORECASE),
]

_RESERVED_NAME = re.compile(r'^(CON|PRN|AUX|NUL|COM[1-9]|LPT[1-9])$', re.IGNORECASE)

FILENAME_PATTERNS = [
    (re.compile(r'\.\.'), 'directory traversal attempts'),
    (re.compile(r'[<>:"|?*]'), 'invalid filename characters'),
    (_RESERVED_NAME, 'Windows reserved names'),
    (re.compile(r'\.(bat|cmd|exe|scr|pif|com|msi|dll|jar)$', re.IGNORECASE), 'executable file extensions'),
    (re.compile(r'\.(php|asp|aspx|jsp|py|rb|pl|sh|bash)$', re.IGNORECASE), 'script file extensions'),
    (re.compile(r'^\.'), 'hidden files'),
]

FOLDER_NAME_PATTERNS = [
    (re.compile(r'\.\.'), 'directory traversal attempts'),
    (re.compile(r'[<>:"|?*/\\]'), 'invalid folder characters'),
    (_RESERVED_NAME, 'Windows reserved names'),
    (re.compile(r'^\.'), 'hidden folders'),
]

FORBIDDEN_ACCESS_EXTENSIONS = ['.exe', '.bat', '.cmd', '.scr', '.php', '.asp', '.jsp']

MAX_FILENAME_LENGTH = 255
MAX_FOLDER_NAME_LENGTH = 100


@dataclass
class FilenameValidation:
    is_valid: bool
    errors: List[str]
    sanitized_filename: str


@dataclass
class FolderNameValidation:
    is_valid: bool
    errors: List[str]
    sanitized_name: str


@dataclass
class ContentValidation:
    is_valid: bool
    errors: List[str] = field(default_factory=list)


@dataclass
class FileValidationResult:
    is_valid: bool
    errors: List[str]
    sanitized_filename: str
    detected_mime_type: Optional[str] = None


@dataclass
class AccessViolation:
    status_code: int
    error: str
    details: Optional[str] = None


def _epoch_millis() -> int:
    return int(time.time() * 1000)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _extension(filename: str) -> str:
    return os.path.splitext(filename)[1]


def _sanitize(name: str, invalid_chars: str) -> str:
    sanitized = re.sub(invalid_chars, '_', name)
    sanitized = sanitized.replace('..', '_')
    sanitized = re.sub(r'^\.+', '', sanitized)
    sanitized = re.sub(r'\s+', '_', sanitized)
    return re.sub(r'[^\w.\-]', '', sanitized, flags=re.ASCII)


class FileSecurityValidator:
    @staticmethod
    def validate_file(
        original_filename: str,
        file_size: int,
        mime_type: str,
        file_head: Optional[bytes] = None
    ) -> FileValidationResult:
        """
        Run every upload check and collect all errors.

        Covers the filename, extension and MIME allow-lists, the per-type size
        limit and, when the leading bytes are available, content sniffing.
        """
        errors: List[str] = []

        filename_validation = FileSecurityValidator.validate_filename(original_filename)
        errors.extend(filename_validation.errors)

        extension = _extension(original_filename).lower()
        if extension not in ALLOWED_EXTENSIONS:
            errors.append(f"File extension '{extension}' is not allowed")

        if mime_type.lower() not in ALLOWED_MIME_TYPES:
            errors.append(f"File type '{mime_type}' is not allowed")

        errors.extend(FileSecurityValidator.validate_file_size(file_size, mime_type))

        if file_head is not None:
            errors.extend(FileSecurityValidator.validate_content(file_head, mime_type).errors)

        return FileValidationResult(
            is_valid=not errors,
            errors=errors,
            sanitized_filename=filename_validation.sanitized_filename,
            detected_mime_type=mime_type
        )

    @staticmethod
    def validate_filename(filename: str) -> FilenameValidation:
        errors: List[str] = []

        if len(filename) > MAX_FILENAME_LENGTH:
            errors.append(f'Filename is too long (max {MAX_FILENAME_LENGTH} characters)')

        if len(filename) == 0:
            errors.append('Filename cannot be empty')

        for pattern, label in FILENAME_PATTERNS:
            if pattern.search(filename):
                errors.append(f'Filename contains {label}')

        sanitized = _sanitize(filename, r'[<>:"|?*]')

        original_ext = _extension(filename)
        if original_ext and not _extension(sanitized):
            sanitized += original_ext

        sanitized = f"{_epoch_millis()}_{secrets.token_hex(4)}_{sanitized}"

        return FilenameValidation(
            is_valid=not errors,
            errors=errors,
            sanitized_filename=sanitized
        )

    @staticmethod
    def validate_file_size(file_size: int, mime_type: str) -> List[str]:
        errors: List[str] = []

        size_limit = DEFAULT_SIZE_LIMIT
        for prefix, limit in FILE_SIZE_LIMITS:
            if mime_type.startswith(prefix):
                size_limit = limit
                break

        if file_size > size_limit:
            errors.append(
                f"File size {_round_half_up(file_size / MB)}MB exceeds limit of {_round_half_up(size_limit / MB)}MB"
            )

        if file_size == 0:
            errors.append('File is empty')

        return errors

    @staticmethod
    def validate_folder_name(folder_name: str) -> FolderNameValidation:
        errors: List[str] = []

        if len(folder_name) > MAX_FOLDER_NAME_LENGTH:
            errors.append(f'Folder name is too long (max {MAX_FOLDER_NAME_LENGTH} characters)')

        if not folder_name.strip():
            errors.append('Folder name cannot be empty')

        for pattern, label in FOLDER_NAME_PATTERNS:
            if pattern.search(folder_name):
                errors.append(f'Folder name contains {label}')

        return FolderNameValidation(
            is_valid=not errors,
            errors=errors,
            sanitized_name=_sanitize(folder_name.strip(), r'[<>:"|?*/\\]')
        )

    @staticmethod
    def generate_secure_filename(original_filename: str) -> str:
        extension = _extension(original_filename).lower()
        return f"{_epoch_millis()}_{secrets.token_hex(16)}{extension}"

    @staticmethod
    def detect_mime_type(file_head: bytes) -> Optional[str]:
        for mime_type, signature in MIME_SIGNATURES:
            if file_head.startswith(signature):
                return mime_type
        return None

    @staticmethod
    def is_flexible_mime_match(detected: str, expected: str) -> bool:
        return any(detected in group and expected in group for group in FLEXIBLE_MIME_GROUPS)

    @staticmethod
    def validate_content(file_head: bytes, expected_mime_type: str) -> ContentValidation:
        errors: List[str] = []

        if any(file_head.startswith(signature) for signature in DANGEROUS_SIGNATURES):
            errors.append('File contains potentially dangerous content')

        detected = FileSecurityValidator.detect_mime_type(file_head)
        if detected and detected != expected_mime_type:
            if not FileSecurityValidator.is_flexible_mime_match(detected, expected_mime_type):
                errors.append(
                    f"File content doesn't match declared type. "
                    f"Expected: {expected_mime_type}, Detected: {detected}"
                )

        if expected_mime_type.startswith('image/'):
            # High bit cleared per byte, so every byte maps to one ASCII char
            content = bytes(b & 0x7F for b in file_head).decode('ascii')
            if any(pattern.search(content) for pattern in IMAGE_SCRIPT_PATTERNS):
                errors.append('Image file contains potentially malicious scripts')

        return ContentValidation(is_valid=not errors, errors=errors)

    @staticmethod
    def validate_file_access(object_path: str) -> Optional[AccessViolation]:
        if not object_path:
            return AccessViolation(status_code=400, error='File path is required')

        if '..' in object_path or '~' in object_path or object_path.startswith('/'):
            return AccessViolation(
                status_code=403,
                error='Invalid file path',
                details='Path contains forbidden characters'
            )

        lowered = object_path.lower()
        if any(ext in lowered for ext in FORBIDDEN_ACCESS_EXTENSIONS):
            return AccessViolation(status_code=403, error='File type not allowed for access')

        return None
