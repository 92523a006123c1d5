# services/tradebook/intel/broker.py
"""Read-only OANDA v3 REST client for account, order and transaction history."""

import asyncio
from typing import Any, Dict, List, Optional

import aiohttp


DEFAULT_API_URL = 'https://api-fxpractice.oanda.com'
TRANSACTION_RANGE = (1, 1000)


class BrokerRequestError(Exception):
    """The broker call itself failed (network, auth, bad status, bad body)."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class BrokerNoDataError(Exception):
    """The broker answered successfully but had nothing to return."""


class OandaClient:
    """Thin async wrapper over the OANDA endpoints the journal displays."""

    def __init__(self, config: Dict[str, Any], timeout: float = 15.0):
        self.api_url = (config.get('OANDA_API_URL') or DEFAULT_API_URL).rstrip('/')
        self.account_id = config.get('OANDA_ACCOUNT_ID') or ''
        self.api_token = config.get('OANDA_API_TOKEN') or ''
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    @property
    def configured(self) -> bool:
        return bool(self.api_token)

    def _headers(self) -> Dict[str, str]:
        return {
            'Content-Type': 'application/json',
            'Authorization': f'Bearer {self.api_token}',
        }

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if not self.configured:
            raise BrokerRequestError('OANDA API token is not configured')

        url = f"{self.api_url}{path}"
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.get(url, headers=self._headers(), params=params) as resp:
                    if resp.status != 200:
                        body = await resp.text()
                        raise BrokerRequestError(
                            f"OANDA API error: {resp.status} - {body[:200]}",
                            status=resp.status,
                        )
                    return await resp.json(content_type=None)
        except aiohttp.ClientError as e:
            raise BrokerRequestError(f"OANDA request failed: {e}")
        except asyncio.TimeoutError:
            raise BrokerRequestError('OANDA request timed out')
        except ValueError as e:
            raise BrokerRequestError(f"OANDA returned invalid JSON: {e}")

    def _account_path(self) -> str:
        if not self.account_id:
            raise BrokerRequestError('OANDA account is not configured')
        return f"/v3/accounts/{self.account_id}"

    @staticmethod
    def _items(data: Dict[str, Any], key: str, label: str) -> List[Dict[str, Any]]:
        items = data.get(key)
        if not isinstance(items, list):
            raise BrokerRequestError(f"OANDA response has no '{key}' list")
        if not items:
            raise BrokerNoDataError(f"No {label} found for this account")
        return items

    async def accounts(self) -> List[Dict[str, Any]]:
        """GET /v3/accounts"""
        data = await self._get('/v3/accounts')
        return self._items(data, 'accounts', 'accounts')

    async def orders(self) -> List[Dict[str, Any]]:
        """GET /v3/accounts/:id/orders"""
        data = await self._get(f"{self._account_path()}/orders")
        return self._items(data, 'orders', 'orders')

    async def transactions(self) -> List[Dict[str, Any]]:
        """GET /v3/accounts/:id/transactions/idrange for the first transaction block."""
        start, end = TRANSACTION_RANGE
        data = await self._get(
            f"{self._account_path()}/transactions/idrange",
            params={'from': str(start), 'to': str(end)},
        )
        return self._items(data, 'transactions', 'transactions')
