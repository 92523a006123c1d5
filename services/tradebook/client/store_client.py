# services/tradebook/client/store_client.py
"""HTTP clients for the trade record store and the image host.

Both talk to the Tradebook API with the session token as a Bearer header.
Failures raise immediately; nothing is retried. The caller owns user-visible
handling and any rollback of local state.
"""

import asyncio
import base64
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import aiohttp

from services.tradebook.intel.images import sniff_extension, CONTENT_TYPES
from services.tradebook.intel.models import Trade


class StoreError(Exception):
    """A record store call failed (network, HTTP status or envelope)."""


class ImageUploadError(Exception):
    """An image could not be uploaded."""


ImageBlob = Union[bytes, str]


class _ApiClient:
    """Shared request plumbing: auth header, envelope unwrapping, error mapping."""

    error_cls = StoreError

    def __init__(self, base_url: str, token: Optional[str] = None,
                 session: Optional[aiohttp.ClientSession] = None,
                 timeout: float = 15.0, logger=None):
        self.base_url = base_url.rstrip('/')
        self.token = token
        self._session = session
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.logger = logger

    def _headers(self) -> Dict[str, str]:
        if not self.token:
            return {}
        return {'Authorization': f'Bearer {self.token}'}

    async def _send(self, session: aiohttp.ClientSession, method: str, path: str,
                    payload: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        async with session.request(method, f"{self.base_url}{path}",
                                   json=payload, headers=self._headers()) as resp:
            try:
                body = await resp.json(content_type=None)
            except ValueError:
                raise self.error_cls(f"{method} {path} returned a non-JSON response (HTTP {resp.status})")

            if not isinstance(body, dict) or not body.get('success'):
                message = body.get('error') if isinstance(body, dict) else None
                raise self.error_cls(message or f"{method} {path} failed with HTTP {resp.status}")
            return body

    async def _request(self, method: str, path: str,
                       payload: Optional[Dict[str, Any]] = None,
                       anonymous: bool = False) -> Dict[str, Any]:
        if not self.token and not anonymous:
            raise self.error_cls('Not signed in')

        try:
            if self._session is not None:
                return await self._send(self._session, method, path, payload)
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                return await self._send(session, method, path, payload)
        except aiohttp.ClientError as e:
            if self.logger:
                self.logger.warn(f"{method} {path} failed: {e}")
            raise self.error_cls(f"Network error: {e}")
        except asyncio.TimeoutError:
            raise self.error_cls(f"{method} {path} timed out")


class TradeStoreClient(_ApiClient):
    """CRUD over the session owner's trades."""

    @classmethod
    async def login(cls, base_url: str, username: str, password: str, **kwargs) -> 'TradeStoreClient':
        """Sign in and return a client carrying the session token."""
        client = cls(base_url, **kwargs)
        body = await client._request('POST', '/api/auth/login',
                                     {'username': username, 'password': password},
                                     anonymous=True)
        client.token = body['token']
        return client

    async def list(self) -> List[Trade]:
        body = await self._request('GET', '/api/trades')
        return [Trade.from_dict(d) for d in body.get('data') or []]

    async def create(self, trade: Trade) -> Trade:
        body = await self._request('POST', '/api/trades', trade.to_dict())
        return Trade.from_dict(body['data'])

    async def update(self, trade_id: str, fields: Dict[str, Any]) -> None:
        await self._request('PUT', f'/api/trades/{trade_id}', fields)

    async def remove(self, trade_id: str) -> None:
        await self._request('DELETE', f'/api/trades/{trade_id}')


def to_data_url(blob: ImageBlob) -> str:
    """Encode raw image bytes as a data URL; strings pass through unchanged."""
    if isinstance(blob, str):
        return blob
    ext = sniff_extension(blob)
    if ext is None:
        raise ImageUploadError('Unrecognised image format')
    return f"data:{CONTENT_TYPES[ext]};base64,{base64.b64encode(blob).decode('ascii')}"


class ImageHostClient(_ApiClient):
    """Uploads local images and returns their hosted URLs."""

    error_cls = ImageUploadError

    async def upload_one(self, blob: ImageBlob, filename: Optional[str] = None) -> str:
        body = await self._request('POST', '/api/upload-image',
                                   {'image': to_data_url(blob), 'filename': filename or 'image'})
        url = body.get('url')
        if not url:
            raise ImageUploadError('Upload response did not include a URL')
        return url

    async def upload(self, blobs: Iterable[Union[ImageBlob, Tuple[ImageBlob, str]]]) -> List[str]:
        """Upload in order; the first failure aborts the batch."""
        urls = []
        for index, item in enumerate(blobs):
            blob, filename = item if isinstance(item, tuple) else (item, f"image_{index + 1}")
            urls.append(await self.upload_one(blob, filename))
        return urls
