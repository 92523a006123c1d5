# services/tradebook/intel/orchestrator.py
"""API server and main loop for the Tradebook service."""

import asyncio
import csv
import io
import json
import os
from datetime import datetime
from typing import Any, Dict, List, Optional

from aiohttp import web
import openpyxl
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from .analytics import Analytics
from .auth import TradebookAuth, require_auth, optional_auth
from .broker import OandaClient, BrokerNoDataError, BrokerRequestError
from .db import TradebookDB, DuplicateRecordError
from .images import ImageStore, ImageRejected, DEFAULT_MAX_SIZE
from .metrics import DisplayRow
from .models import Strategy, Trade, WeeklyAnalysis, card_to_dict, week_key_for
from .playbook import (
    BoardLookupError, add_card, add_section, move_card, remove_card,
    seed_strategies, strategy_checklist, update_card, checklist_items,
)
from .projection import RowProjection


DEFAULT_ORIGINS = 'http://localhost:3000,http://127.0.0.1:3000'


class TradebookOrchestrator:
    """REST API server for the Tradebook service."""

    def __init__(self, config: Dict[str, Any], logger):
        self.config = config
        self.logger = logger
        self.port = int(config.get('TRADEBOOK_PORT', 3010))

        default_db = os.path.join(os.path.dirname(__file__), '..', 'data', 'tradebook.db')
        self.db = TradebookDB(config.get('TRADEBOOK_DB_PATH') or default_db)
        self.analytics = Analytics(self.db)
        self.auth = TradebookAuth(config)
        self.broker = OandaClient(config)

        default_images = os.path.join(os.path.dirname(__file__), '..', 'data', 'images')
        self.max_image_size = int(config.get('MAX_IMAGE_SIZE') or DEFAULT_MAX_SIZE)
        self.images = ImageStore(config.get('TRADEBOOK_IMAGES_PATH') or default_images, self.max_image_size)

        origins = config.get('TRADEBOOK_ALLOWED_ORIGINS') or DEFAULT_ORIGINS
        self.allowed_origins = [o.strip() for o in origins.split(',') if o.strip()]

    def _get_cors_origin(self, request: Optional[web.Request]) -> str:
        """Get allowed origin for CORS response."""
        origin = request.headers.get('Origin', '') if request is not None else ''
        if origin in self.allowed_origins:
            return origin
        return self.allowed_origins[0]

    def _json_response(self, data: Any, status: int = 200, request: web.Request = None) -> web.Response:
        """Create a JSON response with CORS headers."""
        return web.Response(
            text=json.dumps(data, default=str),
            status=status,
            content_type='application/json',
            headers={
                'Access-Control-Allow-Origin': self._get_cors_origin(request),
                'Access-Control-Allow-Methods': 'GET, POST, PUT, DELETE, OPTIONS',
                'Access-Control-Allow-Headers': 'Content-Type, Authorization',
                'Access-Control-Allow-Credentials': 'true',
            }
        )

    def _error_response(self, message: str, status: int = 400, request: web.Request = None, **extra) -> web.Response:
        """Create an error JSON response."""
        return self._json_response({'success': False, 'error': message, **extra}, status, request)

    async def _read_json(self, request: web.Request) -> Dict[str, Any]:
        try:
            body = await request.json()
        except json.JSONDecodeError:
            raise ValueError('Invalid JSON body')
        if not isinstance(body, dict):
            raise ValueError('JSON body must be an object')
        return body

    async def handle_options(self, request: web.Request) -> web.Response:
        """Handle CORS preflight requests."""
        return web.Response(
            status=204,
            headers={
                'Access-Control-Allow-Origin': self._get_cors_origin(request),
                'Access-Control-Allow-Methods': 'GET, POST, PUT, DELETE, OPTIONS',
                'Access-Control-Allow-Headers': 'Content-Type, Authorization',
                'Access-Control-Allow-Credentials': 'true',
            }
        )

    # ==================== Session Endpoints ====================

    async def login(self, request: web.Request) -> web.Response:
        """POST /api/auth/login - Exchange credentials for a session."""
        try:
            body = await self._read_json(request)
            username = (body.get('username') or '').strip()
            password = body.get('password') or ''

            if not username or not password:
                return self._error_response('Username and password required', 400)

            user = self.auth.authenticate(username, password)
            if not user:
                self.logger.warn(f"failed login for '{username}'", emoji="🔒")
                return self._error_response('Invalid credentials', 401)

            token = self.auth.issue_session(user)
            response = self._json_response({'success': True, 'user': user, 'token': token})
            self.auth.set_session_cookie(response, token)
            self.logger.info(f"user {user['id']} logged in", emoji="🔑")
            return response
        except ValueError as e:
            return self._error_response(str(e), 400)
        except Exception as e:
            self.logger.error(f"login error: {e}")
            return self._error_response(str(e), 500)

    async def logout(self, request: web.Request) -> web.Response:
        """POST /api/auth/logout - Clear the session cookie."""
        response = self._json_response({'success': True})
        self.auth.clear_session_cookie(response)
        return response

    @optional_auth
    async def get_session(self, request: web.Request) -> web.Response:
        """GET /api/auth/session - Current session user, or null."""
        return self._json_response({'success': True, 'user': request['user']})

    # ==================== Trade Endpoints ====================

    @require_auth
    async def list_trades(self, request: web.Request) -> web.Response:
        """GET /api/trades - List the session owner's trades."""
        try:
            trades = self.db.list_trades(request['user']['id'])
            return self._json_response({
                'success': True,
                'data': [t.to_dict() for t in trades],
                'count': len(trades)
            })
        except Exception as e:
            self.logger.error(f"list_trades error: {e}")
            return self._error_response(str(e), 500)

    @require_auth
    async def get_trade(self, request: web.Request) -> web.Response:
        """GET /api/trades/:id - Get a single trade with its display row."""
        try:
            trade = self.db.get_trade(request['user']['id'], request.match_info['id'])
            if not trade:
                return self._error_response('Trade not found', 404)

            row = RowProjection().refresh([trade])[0]
            return self._json_response({
                'success': True,
                'data': trade.to_dict(),
                'row': row.to_dict()
            })
        except Exception as e:
            self.logger.error(f"get_trade error: {e}")
            return self._error_response(str(e), 500)

    @require_auth
    async def create_trade(self, request: web.Request) -> web.Response:
        """POST /api/trades - Create a trade (client-generated id)."""
        try:
            body = await self._read_json(request)
            body['id'] = str(body.get('id') or Trade.new_id())
            body['user_id'] = request['user']['id']
            body.pop('created_at', None)

            trade = self.db.create_trade(Trade.from_dict(body))
            self.logger.info(f"created trade {trade.id} ({trade.pair or 'no pair'})", emoji="📝")

            return self._json_response({
                'success': True,
                'data': trade.to_dict()
            }, 201)
        except DuplicateRecordError as e:
            return self._error_response(str(e), 409)
        except ValueError as e:
            return self._error_response(str(e), 400)
        except Exception as e:
            self.logger.error(f"create_trade error: {e}")
            return self._error_response(str(e), 500)

    @require_auth
    async def update_trade(self, request: web.Request) -> web.Response:
        """PUT /api/trades/:id - Merge fields into a trade."""
        try:
            trade_id = request.match_info['id']
            body = await self._read_json(request)

            # Don't allow updating certain fields
            protected = Trade.PROTECTED_FIELDS + ('updated_at',)
            updates = {k: v for k, v in body.items() if k not in protected}

            trade = self.db.update_trade(request['user']['id'], trade_id, updates)
            if not trade:
                return self._error_response('Trade not found', 404)

            return self._json_response({
                'success': True,
                'data': trade.to_dict()
            })
        except ValueError as e:
            return self._error_response(str(e), 400)
        except Exception as e:
            self.logger.error(f"update_trade error: {e}")
            return self._error_response(str(e), 500)

    @require_auth
    async def delete_trade(self, request: web.Request) -> web.Response:
        """DELETE /api/trades/:id - Delete a trade."""
        try:
            trade_id = request.match_info['id']
            if not self.db.delete_trade(request['user']['id'], trade_id):
                return self._error_response('Trade not found', 404)

            self.logger.info(f"deleted trade {trade_id}", emoji="🗑️")
            return self._json_response({'success': True, 'data': {'id': trade_id}})
        except Exception as e:
            self.logger.error(f"delete_trade error: {e}")
            return self._error_response(str(e), 500)

    # ==================== Export ====================

    EXPORT_COLUMNS = list(DisplayRow.__dataclass_fields__)

    @require_auth
    async def export_trades(self, request: web.Request) -> web.Response:
        """GET /api/trades/export - Export projected rows as CSV or Excel."""
        try:
            format_type = request.query.get('format', 'csv').lower()
            if format_type not in ('csv', 'xlsx'):
                return self._error_response(f"Unsupported format '{format_type}'", 400)

            trades = self.db.list_trades(request['user']['id'])
            rows = RowProjection().refresh(trades)
            stamp = datetime.utcnow().strftime('%Y%m%d')

            if format_type == 'xlsx':
                return self._export_excel(rows, f"tradebook_{stamp}.xlsx")
            return self._export_csv(rows, f"tradebook_{stamp}.csv")
        except Exception as e:
            self.logger.error(f"export_trades error: {e}")
            return self._error_response(str(e), 500)

    def _row_values(self, row: DisplayRow) -> list:
        data = row.to_dict()
        return ['' if data[col] is None else data[col] for col in self.EXPORT_COLUMNS]

    def _export_csv(self, rows: List[DisplayRow], filename: str) -> web.Response:
        """Generate CSV file from display rows."""
        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(self.EXPORT_COLUMNS)
        for row in rows:
            writer.writerow(self._row_values(row))

        return web.Response(
            body=output.getvalue().encode('utf-8'),
            content_type='text/csv',
            headers={'Content-Disposition': f'attachment; filename="{filename}"'}
        )

    def _export_excel(self, rows: List[DisplayRow], filename: str) -> web.Response:
        """Generate Excel file from display rows."""
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.title = "Trades"

        for col, header in enumerate(self.EXPORT_COLUMNS, 1):
            cell = ws.cell(row=1, column=col, value=header)
            cell.font = Font(bold=True)

        for row_num, row in enumerate(rows, 2):
            for col, value in enumerate(self._row_values(row), 1):
                ws.cell(row=row_num, column=col, value=value)

        for col in range(1, len(self.EXPORT_COLUMNS) + 1):
            ws.column_dimensions[get_column_letter(col)].width = 14

        output = io.BytesIO()
        wb.save(output)

        return web.Response(
            body=output.getvalue(),
            content_type='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
            headers={'Content-Disposition': f'attachment; filename="{filename}"'}
        )

    # ==================== Image Endpoints ====================

    @require_auth
    async def upload_image(self, request: web.Request) -> web.Response:
        """POST /api/upload-image - Store a data-URL image, returns its URL."""
        try:
            body = await self._read_json(request)
            url = self.images.save(request['user']['id'], body.get('image') or '', body.get('filename'))
            self.logger.info(f"stored image {url}", emoji="🖼️")
            return self._json_response({'success': True, 'url': url})
        except ImageRejected as e:
            return self._error_response(str(e), 400)
        except ValueError as e:
            return self._error_response(str(e), 400)
        except Exception as e:
            self.logger.error(f"upload_image error: {e}")
            return self._error_response(str(e), 500)

    def _owns_image_path(self, request: web.Request) -> bool:
        return request.match_info['user'] == ImageStore.owner_segment(request['user']['id'])

    @require_auth
    async def get_image(self, request: web.Request) -> web.StreamResponse:
        """GET /api/images/:user/:name - Serve a stored image to its owner."""
        try:
            if not self._owns_image_path(request):
                return self._error_response('Access denied', 403)

            found = self.images.resolve(request['user']['id'], request.match_info['name'])
            if not found:
                return self._error_response('Image not found', 404)

            path, content_type = found
            return web.FileResponse(path, headers={'Content-Type': content_type})
        except Exception as e:
            self.logger.error(f"get_image error: {e}")
            return self._error_response(str(e), 500)

    @require_auth
    async def delete_image(self, request: web.Request) -> web.Response:
        """DELETE /api/images/:user/:name - Remove a stored image."""
        try:
            if not self._owns_image_path(request):
                return self._error_response('Access denied', 403)

            if not self.images.delete(request['user']['id'], request.match_info['name']):
                return self._error_response('Image not found', 404)
            return self._json_response({'success': True})
        except Exception as e:
            self.logger.error(f"delete_image error: {e}")
            return self._error_response(str(e), 500)

    # ==================== Broker Endpoints ====================

    async def _broker_response(self, name: str, fetch) -> web.Response:
        try:
            items = await fetch()
            return self._json_response({'success': True, 'data': items, 'count': len(items)})
        except BrokerNoDataError as e:
            return self._error_response(str(e), 404, code='no_data')
        except BrokerRequestError as e:
            self.logger.warn(f"{name} error: {e}")
            return self._error_response(str(e), 502, code='request_failed')
        except Exception as e:
            self.logger.error(f"{name} error: {e}")
            return self._error_response(str(e), 500)

    @require_auth
    async def oanda_accounts(self, request: web.Request) -> web.Response:
        """GET /api/oanda/accounts"""
        return await self._broker_response('oanda_accounts', self.broker.accounts)

    @require_auth
    async def oanda_orders(self, request: web.Request) -> web.Response:
        """GET /api/oanda/orders"""
        return await self._broker_response('oanda_orders', self.broker.orders)

    @require_auth
    async def oanda_transactions(self, request: web.Request) -> web.Response:
        """GET /api/oanda/transactions"""
        return await self._broker_response('oanda_transactions', self.broker.transactions)

    # ==================== Weekly Analysis Endpoints ====================

    @require_auth
    async def get_weekly(self, request: web.Request) -> web.Response:
        """GET /api/weekly?week_key=YYYY-MM-DD - The owner's analysis for a week."""
        try:
            raw_key = request.query.get('week_key')
            if not raw_key:
                return self._error_response('week_key is required', 400)

            weekly = self.db.get_weekly(request['user']['id'], week_key_for(raw_key))
            return self._json_response({
                'success': True,
                'data': weekly.to_dict() if weekly else None
            })
        except ValueError as e:
            return self._error_response(str(e), 400)
        except Exception as e:
            self.logger.error(f"get_weekly error: {e}")
            return self._error_response(str(e), 500)

    @require_auth
    async def save_weekly(self, request: web.Request) -> web.Response:
        """POST /api/weekly - Upsert the owner's analysis for a week."""
        try:
            body = await self._read_json(request)
            body['user_id'] = request['user']['id']
            weekly = self.db.upsert_weekly(WeeklyAnalysis.from_dict(body))

            return self._json_response({'success': True, 'data': weekly.to_dict()})
        except ValueError as e:
            return self._error_response(str(e), 400)
        except Exception as e:
            self.logger.error(f"save_weekly error: {e}")
            return self._error_response(str(e), 500)

    @require_auth
    async def list_weeks(self, request: web.Request) -> web.Response:
        """GET /api/weekly/weeks - Weeks that have saved analysis."""
        try:
            weeks = self.db.list_week_keys(request['user']['id'])
            return self._json_response({'success': True, 'data': weeks, 'count': len(weeks)})
        except Exception as e:
            self.logger.error(f"list_weeks error: {e}")
            return self._error_response(str(e), 500)

    # ==================== Strategy Playbook Endpoints ====================

    @require_auth
    async def list_strategies(self, request: web.Request) -> web.Response:
        """GET /api/strategies"""
        try:
            strategies = self.db.list_strategies(request['user']['id'])
            return self._json_response({
                'success': True,
                'data': [s.to_dict() for s in strategies],
                'count': len(strategies)
            })
        except Exception as e:
            self.logger.error(f"list_strategies error: {e}")
            return self._error_response(str(e), 500)

    @require_auth
    async def create_strategy(self, request: web.Request) -> web.Response:
        """POST /api/strategies"""
        try:
            body = await self._read_json(request)
            body.pop('id', None)
            body.pop('created_at', None)
            body['user_id'] = request['user']['id']

            strategy = self.db.create_strategy(Strategy.from_dict(body))
            return self._json_response({'success': True, 'data': strategy.to_dict()}, 201)
        except ValueError as e:
            return self._error_response(str(e), 400)
        except Exception as e:
            self.logger.error(f"create_strategy error: {e}")
            return self._error_response(str(e), 500)

    @require_auth
    async def update_strategy(self, request: web.Request) -> web.Response:
        """PUT /api/strategies/:id"""
        try:
            body = await self._read_json(request)
            strategy = self.db.update_strategy(request['user']['id'], request.match_info['id'], body)
            if not strategy:
                return self._error_response('Strategy not found', 404)
            return self._json_response({'success': True, 'data': strategy.to_dict()})
        except ValueError as e:
            return self._error_response(str(e), 400)
        except Exception as e:
            self.logger.error(f"update_strategy error: {e}")
            return self._error_response(str(e), 500)

    @require_auth
    async def delete_strategy(self, request: web.Request) -> web.Response:
        """DELETE /api/strategies/:id"""
        try:
            if not self.db.delete_strategy(request['user']['id'], request.match_info['id']):
                return self._error_response('Strategy not found', 404)
            return self._json_response({'success': True})
        except Exception as e:
            self.logger.error(f"delete_strategy error: {e}")
            return self._error_response(str(e), 500)

    @require_auth
    async def seed_strategies(self, request: web.Request) -> web.Response:
        """POST /api/strategies/seed?force=true - Install the starter boards."""
        try:
            force = request.query.get('force', 'false') == 'true'
            strategies = seed_strategies(self.db, request['user']['id'], force=force)
            self.logger.info(f"seeded {len(strategies)} strategies for {request['user']['id']}", emoji="🌱")
            return self._json_response({
                'success': True,
                'data': [s.to_dict() for s in strategies],
                'count': len(strategies)
            })
        except Exception as e:
            self.logger.error(f"seed_strategies error: {e}")
            return self._error_response(str(e), 500)

    @require_auth
    async def get_strategy_checklist(self, request: web.Request) -> web.Response:
        """GET /api/strategies/:id/checklist?trade_id= - Checklist for the trade form."""
        try:
            user_id = request['user']['id']
            strategy = self.db.get_strategy(user_id, request.match_info['id'])
            if not strategy:
                return self._error_response('Strategy not found', 404)

            current = None
            trade_id = request.query.get('trade_id')
            if trade_id:
                trade = self.db.get_trade(user_id, trade_id)
                if not trade:
                    return self._error_response('Trade not found', 404)
                current = trade.strategy_checklist

            return self._json_response({
                'success': True,
                'data': {
                    'items': checklist_items(strategy),
                    'checklist': strategy_checklist(strategy, current),
                }
            })
        except Exception as e:
            self.logger.error(f"get_strategy_checklist error: {e}")
            return self._error_response(str(e), 500)

    async def _edit_board(self, request: web.Request, name: str, edit, status: int = 200) -> web.Response:
        """Load a strategy, apply ``edit`` to it, persist, and return edit's result."""
        try:
            user_id = request['user']['id']
            strategy = self.db.get_strategy(user_id, request.match_info['id'])
            if not strategy:
                return self._error_response('Strategy not found', 404)

            body = await self._read_json(request) if request.can_read_body else {}
            result = edit(strategy, body)
            self.db.save_strategy(strategy)

            return self._json_response({'success': True, 'data': result}, status)
        except BoardLookupError as e:
            return self._error_response(str(e), 404)
        except ValueError as e:
            return self._error_response(str(e), 400)
        except Exception as e:
            self.logger.error(f"{name} error: {e}")
            return self._error_response(str(e), 500)

    @require_auth
    async def create_section(self, request: web.Request) -> web.Response:
        """POST /api/strategies/:id/sections"""
        def edit(strategy, body):
            if not body.get('id') or not body.get('name'):
                raise ValueError('section id and name are required')
            return add_section(strategy, str(body['id']), str(body['name'])).to_dict()
        return await self._edit_board(request, 'create_section', edit, 201)

    @require_auth
    async def create_card(self, request: web.Request) -> web.Response:
        """POST /api/strategies/:id/sections/:section/cards"""
        section_id = request.match_info['section']
        return await self._edit_board(
            request, 'create_card',
            lambda strategy, body: card_to_dict(add_card(strategy, section_id, body)),
            201,
        )

    @require_auth
    async def update_card(self, request: web.Request) -> web.Response:
        """PUT /api/strategies/:id/sections/:section/cards/:card"""
        section_id = request.match_info['section']
        card_id = request.match_info['card']
        return await self._edit_board(
            request, 'update_card',
            lambda strategy, body: card_to_dict(update_card(strategy, section_id, card_id, body)),
        )

    @require_auth
    async def delete_card(self, request: web.Request) -> web.Response:
        """DELETE /api/strategies/:id/sections/:section/cards/:card"""
        section_id = request.match_info['section']
        card_id = request.match_info['card']
        return await self._edit_board(
            request, 'delete_card',
            lambda strategy, body: card_to_dict(remove_card(strategy, section_id, card_id)),
        )

    @require_auth
    async def reorder_card(self, request: web.Request) -> web.Response:
        """POST /api/strategies/:id/sections/:section/cards/:card/move {position}"""
        section_id = request.match_info['section']
        card_id = request.match_info['card']

        def edit(strategy, body):
            try:
                position = int(body.get('position'))
            except (TypeError, ValueError):
                raise ValueError('position must be an integer')
            return card_to_dict(move_card(strategy, section_id, card_id, position))

        return await self._edit_board(request, 'reorder_card', edit)

    # ==================== Analytics Endpoints ====================

    @require_auth
    async def get_analytics(self, request: web.Request) -> web.Response:
        """GET /api/analytics - Dashboard summary."""
        try:
            summary = self.analytics.get_summary(request['user']['id'])
            return self._json_response({'success': True, 'data': summary.to_dict()})
        except Exception as e:
            self.logger.error(f"get_analytics error: {e}")
            return self._error_response(str(e), 500)

    @require_auth
    async def get_pair_breakdown(self, request: web.Request) -> web.Response:
        """GET /api/analytics/pairs"""
        try:
            data = self.analytics.get_pair_breakdown(request['user']['id'])
            return self._json_response({'success': True, 'data': data})
        except Exception as e:
            self.logger.error(f"get_pair_breakdown error: {e}")
            return self._error_response(str(e), 500)

    @require_auth
    async def get_daily_pnl(self, request: web.Request) -> web.Response:
        """GET /api/analytics/daily?days=30"""
        try:
            days = int(request.query.get('days', 0)) or None
            data = self.analytics.get_daily_pnl(request['user']['id'], days)
            return self._json_response({'success': True, 'data': data})
        except ValueError:
            return self._error_response('days must be an integer', 400)
        except Exception as e:
            self.logger.error(f"get_daily_pnl error: {e}")
            return self._error_response(str(e), 500)

    # ==================== Health / App ====================

    async def health_check(self, request: web.Request) -> web.Response:
        """GET /health - Health check endpoint."""
        return self._json_response({
            'success': True,
            'service': 'tradebook',
            'status': 'healthy',
            'broker_configured': self.broker.configured,
            'ts': datetime.utcnow().isoformat()
        })

    @web.middleware
    async def cors_middleware(self, request: web.Request, handler):
        """Add CORS headers to all responses."""
        if request.method == 'OPTIONS':
            return await self.handle_options(request)

        response = await handler(request)

        response.headers['Access-Control-Allow-Origin'] = self._get_cors_origin(request)
        response.headers['Access-Control-Allow-Credentials'] = 'true'
        response.headers['Access-Control-Allow-Methods'] = 'GET, POST, PUT, DELETE, OPTIONS'
        response.headers['Access-Control-Allow-Headers'] = 'Content-Type, Authorization'

        return response

    def create_app(self) -> web.Application:
        """Create the aiohttp application with routes."""
        # Base64 data URLs are about 4/3 the size of the image they carry
        app = web.Application(
            middlewares=[self.cors_middleware],
            client_max_size=self.max_image_size * 2,
        )

        app.router.add_route('OPTIONS', '/{tail:.*}', self.handle_options)
        app.router.add_get('/health', self.health_check)

        # Session
        app.router.add_post('/api/auth/login', self.login)
        app.router.add_post('/api/auth/logout', self.logout)
        app.router.add_get('/api/auth/session', self.get_session)

        # Trades
        app.router.add_get('/api/trades', self.list_trades)
        app.router.add_post('/api/trades', self.create_trade)
        app.router.add_get('/api/trades/export', self.export_trades)
        app.router.add_get('/api/trades/{id}', self.get_trade)
        app.router.add_put('/api/trades/{id}', self.update_trade)
        app.router.add_delete('/api/trades/{id}', self.delete_trade)

        # Images
        app.router.add_post('/api/upload-image', self.upload_image)
        app.router.add_get('/api/images/{user}/{name}', self.get_image)
        app.router.add_delete('/api/images/{user}/{name}', self.delete_image)

        # Broker
        app.router.add_get('/api/oanda/accounts', self.oanda_accounts)
        app.router.add_get('/api/oanda/orders', self.oanda_orders)
        app.router.add_get('/api/oanda/transactions', self.oanda_transactions)

        # Weekly analysis
        app.router.add_get('/api/weekly', self.get_weekly)
        app.router.add_post('/api/weekly', self.save_weekly)
        app.router.add_get('/api/weekly/weeks', self.list_weeks)

        # Strategy playbook
        app.router.add_get('/api/strategies', self.list_strategies)
        app.router.add_post('/api/strategies', self.create_strategy)
        app.router.add_post('/api/strategies/seed', self.seed_strategies)
        app.router.add_put('/api/strategies/{id}', self.update_strategy)
        app.router.add_delete('/api/strategies/{id}', self.delete_strategy)
        app.router.add_get('/api/strategies/{id}/checklist', self.get_strategy_checklist)
        app.router.add_post('/api/strategies/{id}/sections', self.create_section)
        app.router.add_post('/api/strategies/{id}/sections/{section}/cards', self.create_card)
        app.router.add_put('/api/strategies/{id}/sections/{section}/cards/{card}', self.update_card)
        app.router.add_delete('/api/strategies/{id}/sections/{section}/cards/{card}', self.delete_card)
        app.router.add_post('/api/strategies/{id}/sections/{section}/cards/{card}/move', self.reorder_card)

        # Analytics
        app.router.add_get('/api/analytics', self.get_analytics)
        app.router.add_get('/api/analytics/pairs', self.get_pair_breakdown)
        app.router.add_get('/api/analytics/daily', self.get_daily_pnl)

        return app

    async def start(self) -> web.AppRunner:
        """Start the API server and return the runner for cleanup."""
        app = self.create_app()
        runner = web.AppRunner(app)
        await runner.setup()

        site = web.TCPSite(runner, '0.0.0.0', self.port)
        await site.start()

        self.logger.ok(f"Tradebook API running on port {self.port}", emoji="📒")
        return runner


async def run(config: Dict[str, Any], logger) -> None:
    """Entry point for orchestrator."""
    orchestrator = TradebookOrchestrator(config, logger)
    runner = await orchestrator.start()

    try:
        # Run forever until cancelled
        while True:
            await asyncio.sleep(1)
    except asyncio.CancelledError:
        logger.info("Orchestrator cancelled", emoji="🛑")
    finally:
        logger.info("Shutting down API server", emoji="🛑")
        await runner.cleanup()
