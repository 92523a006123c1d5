"""
OandaClient — Tests against a local fake OANDA server
"""
import asyncio

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from services.tradebook.intel.broker import BrokerNoDataError, BrokerRequestError, OandaClient


TOKEN = 'oanda-token'


def fake_oanda(seen: list) -> web.Application:
    async def accounts(request):
        seen.append(('accounts', request.headers.get('Authorization')))
        if request.headers.get('Authorization') != f'Bearer {TOKEN}':
            return web.json_response({'errorMessage': 'Insufficient authorization'}, status=401)
        return web.json_response({'accounts': [{'id': '001-001-1-001'}]})

    async def orders(request):
        seen.append(('orders', request.match_info['account']))
        return web.json_response({'orders': [], 'lastTransactionID': '7'})

    async def transactions(request):
        seen.append(('transactions', dict(request.query)))
        return web.json_response({'transactions': [{'id': '1', 'type': 'MARKET_ORDER'}]})

    app = web.Application()
    app.router.add_get('/v3/accounts', accounts)
    app.router.add_get('/v3/accounts/{account}/orders', orders)
    app.router.add_get('/v3/accounts/{account}/transactions/idrange', transactions)
    return app


def call(method: str, token: str = TOKEN, account: str = 'ACC-1'):
    """Run one client method against a fresh fake server; returns (result or exception, seen)."""
    seen: list = []

    async def go():
        async with TestServer(fake_oanda(seen)) as server:
            client = OandaClient({
                'OANDA_API_URL': str(server.make_url('/')),
                'OANDA_API_TOKEN': token,
                'OANDA_ACCOUNT_ID': account,
            })
            try:
                return await getattr(client, method)()
            except (BrokerRequestError, BrokerNoDataError) as e:
                return e

    return asyncio.run(go()), seen


class TestOandaClient:
    def test_accounts(self):
        result, seen = call('accounts')
        assert result == [{'id': '001-001-1-001'}]
        assert seen == [('accounts', f'Bearer {TOKEN}')]

    def test_bad_token_is_request_error(self):
        result, _ = call('accounts', token='wrong')
        assert isinstance(result, BrokerRequestError)
        assert result.status == 401

    def test_empty_list_is_no_data(self):
        result, seen = call('orders')
        assert isinstance(result, BrokerNoDataError)
        assert str(result) == 'No orders found for this account'
        assert seen == [('orders', 'ACC-1')]

    def test_transactions_use_id_range(self):
        result, seen = call('transactions')
        assert result[0]['type'] == 'MARKET_ORDER'
        assert seen == [('transactions', {'from': '1', 'to': '1000'})]

    def test_missing_account(self):
        result, seen = call('orders', account='')
        assert isinstance(result, BrokerRequestError)
        assert seen == []

    def test_not_configured(self):
        client = OandaClient({})
        assert client.configured is False
        with pytest.raises(BrokerRequestError):
            asyncio.run(client.accounts())

    def test_unreachable_host(self):
        client = OandaClient({'OANDA_API_URL': 'http://127.0.0.1:1', 'OANDA_API_TOKEN': TOKEN}, timeout=2)
        with pytest.raises(BrokerRequestError):
            asyncio.run(client.accounts())

    def test_missing_list_is_request_error(self):
        with pytest.raises(BrokerRequestError):
            OandaClient._items({'lastTransactionID': '1'}, 'orders', 'orders')
