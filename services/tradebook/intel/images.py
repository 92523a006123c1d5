# services/tradebook/intel/images.py
"""Local-disk image hosting for trade screenshots and playbook cards."""

import base64
import binascii
import re
import uuid
from pathlib import Path
from typing import Optional, Tuple


DEFAULT_MAX_SIZE = 10 * 1024 * 1024  # 10MB

CONTENT_TYPES = {
    'png': 'image/png',
    'jpg': 'image/jpeg',
    'gif': 'image/gif',
    'webp': 'image/webp',
}
EXTENSIONS = {
    'image/png': 'png',
    'image/jpeg': 'jpg',
    'image/jpg': 'jpg',
    'image/gif': 'gif',
    'image/webp': 'webp',
}

_DATA_URL = re.compile(r'^data:(?P<mime>[\w/+.-]+);base64,(?P<data>.*)$', re.DOTALL)
_SAFE_NAME = re.compile(r'[^A-Za-z0-9_-]+')
_STORED_NAME = re.compile(r'^[A-Za-z0-9_-]+\.(png|jpg|gif|webp)$')


class ImageRejected(ValueError):
    """The uploaded payload is not an acceptable image."""


def sniff_extension(data: bytes) -> Optional[str]:
    """Identify an image format from its magic bytes."""
    if data.startswith(b'\x89PNG\r\n\x1a\n'):
        return 'png'
    if data.startswith(b'\xff\xd8\xff'):
        return 'jpg'
    if data[:6] in (b'GIF87a', b'GIF89a'):
        return 'gif'
    if data[:4] == b'RIFF' and data[8:12] == b'WEBP':
        return 'webp'
    return None


def decode_image(payload: str) -> Tuple[bytes, str]:
    """
    Decode a data URL or bare base64 string.

    Returns:
        (raw bytes, file extension)
    """
    if not payload:
        raise ImageRejected('No image provided')

    declared = None
    match = _DATA_URL.match(payload.strip())
    if match:
        declared = EXTENSIONS.get(match.group('mime').lower())
        if declared is None:
            raise ImageRejected(f"Unsupported image type {match.group('mime')}")
        payload = match.group('data')

    try:
        data = base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError):
        raise ImageRejected('Image is not valid base64')

    sniffed = sniff_extension(data)
    if sniffed is None:
        raise ImageRejected('Unrecognised image format')
    return data, declared or sniffed


class ImageStore:
    """Stores images under ``<base>/<user_id>/`` and serves them back by name."""

    def __init__(self, base_path, max_size: int = DEFAULT_MAX_SIZE):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.max_size = max_size

    @staticmethod
    def owner_segment(user_id: str) -> str:
        """Directory and URL segment for an owner's images."""
        return _SAFE_NAME.sub('_', str(user_id))

    def _user_dir(self, user_id: str) -> Path:
        return self.base_path / self.owner_segment(user_id)

    @classmethod
    def url_for(cls, user_id: str, name: str) -> str:
        return f"/api/images/{cls.owner_segment(user_id)}/{name}"

    def save(self, user_id: str, payload: str, filename: Optional[str] = None) -> str:
        """Decode and store an upload; returns the image URL."""
        data, ext = decode_image(payload)
        if len(data) > self.max_size:
            raise ImageRejected(f'File too large (max {self.max_size // 1024 // 1024}MB)')

        stem = _SAFE_NAME.sub('_', Path(filename or 'image').stem)[:60] or 'image'
        name = f"{uuid.uuid4().hex[:12]}_{stem}.{ext}"

        directory = self._user_dir(user_id)
        directory.mkdir(parents=True, exist_ok=True)
        (directory / name).write_bytes(data)
        return self.url_for(user_id, name)

    def resolve(self, user_id: str, name: str) -> Optional[Tuple[Path, str]]:
        """Path and content type of a stored image, or None."""
        if not _STORED_NAME.match(name):
            return None
        path = self._user_dir(user_id) / name
        if not path.is_file():
            return None
        return path, CONTENT_TYPES[name.rsplit('.', 1)[1]]

    def delete(self, user_id: str, name: str) -> bool:
        found = self.resolve(user_id, name)
        if not found:
            return False
        found[0].unlink()
        return True
