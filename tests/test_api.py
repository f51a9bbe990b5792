"""
Integration tests for the API endpoints using httpx AsyncClient.

These tests exercise the full FastAPI request → endpoint → service pipeline,
with mocked service layers to isolate from the database.
"""

import importlib
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from simbank.core.exceptions import (
    AuthenticationFailed,
    ConflictException,
    InsufficientFunds,
    LiquidityWindowPending,
    NotFoundException,
    ValidationFailed,
    add_exception_handlers,
)
from simbank.core.resilience import CircuitBreakerError
from simbank.models.card import CardStatus
from simbank.models.ledger import EntryKind
from simbank.models.pix import PixKeyType
from simbank.services.investment_service import PositionValuation, quote_redemption
from simbank.services.ledger_service import LedgerReceipt, StatementPage
from simbank.services.user_service import UserProfile

from .conftest import (
    ACCOUNT_ID,
    ACCOUNT_ID_2,
    CARD_ID,
    KEY_ID,
    POSITION_ID,
    PRODUCT_ID,
    USER_ID,
    make_account,
    make_card,
    make_entry,
    make_pix_key,
    make_position,
    make_product,
    make_user,
)

# ────────────────────────────────────────────────────────────────────────────
# Test app factory
# ────────────────────────────────────────────────────────────────────────────


def _make_test_app() -> FastAPI:
    """
    Build a minimal FastAPI app with the real routers but
    NO database or lifespan — services will be injected via overrides.
    """
    from simbank.api.v1.api import api_router

    app = FastAPI()
    add_exception_handlers(app)
    app.include_router(api_router, prefix="/api/v1")
    return app


class _EndpointTest:
    """Builds the app and overrides one service factory with an AsyncMock."""

    factory_path: str

    @pytest.fixture(autouse=True)
    def _setup(self):
        self.app = _make_test_app()
        self.mock_service = AsyncMock()
        module_name, factory_name = self.factory_path.rsplit(".", 1)
        module = importlib.import_module(module_name)
        self.app.dependency_overrides[getattr(module, factory_name)] = lambda: self.mock_service

    async def _request(self, method: str, url: str, **kwargs):
        transport = ASGITransport(app=self.app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            return await client.request(method, url, **kwargs)


# ────────────────────────────────────────────────────────────────────────────
# Users
# ────────────────────────────────────────────────────────────────────────────


class TestUserEndpoints(_EndpointTest):
    """Tests for /api/v1/users endpoints."""

    factory_path = "simbank.api.v1.endpoints.users._get_user_service"

    @pytest.mark.asyncio
    async def test_register_201(self):
        self.mock_service.register.return_value = UserProfile(make_user(), make_account(balance_cents=0))

        resp = await self._request(
            "POST",
            "/api/v1/users/register",
            json={"name": "Maria Silva", "cpf": "390.533.447-05", "password": "s3cret!"},
        )

        assert resp.status_code == 201
        data = resp.json()
        assert data["user"]["id"] == str(USER_ID)
        assert data["account"]["balance_cents"] == 0
        assert data["account"]["balance_display"] == "R$ 0,00"
        assert "password_hash" not in data["user"]
        self.mock_service.register.assert_awaited_once_with("Maria Silva", "390.533.447-05", "s3cret!")

    @pytest.mark.asyncio
    async def test_register_409_duplicate_cpf(self):
        self.mock_service.register.side_effect = ConflictException("CPF is already registered")

        resp = await self._request(
            "POST",
            "/api/v1/users/register",
            json={"name": "Maria Silva", "cpf": "39053344705", "password": "s3cret!"},
        )

        assert resp.status_code == 409
        assert resp.json() == {"error": True, "message": "CPF is already registered"}

    @pytest.mark.asyncio
    async def test_register_422_missing_password(self):
        resp = await self._request(
            "POST",
            "/api/v1/users/register",
            json={"name": "Maria Silva", "cpf": "39053344705"},
        )

        assert resp.status_code == 422
        data = resp.json()
        assert data["error"] is True
        assert any("password" in d["field"] for d in data["details"])

    @pytest.mark.asyncio
    async def test_login_401_wrong_password(self):
        self.mock_service.login.side_effect = AuthenticationFailed("Invalid password")

        resp = await self._request(
            "POST", "/api/v1/users/login", json={"cpf": "39053344705", "password": "nope"}
        )

        assert resp.status_code == 401
        assert resp.json()["message"] == "Invalid password"

    @pytest.mark.asyncio
    async def test_me_200(self):
        self.mock_service.me.return_value = UserProfile(make_user(), make_account())

        resp = await self._request("GET", f"/api/v1/users/{USER_ID}")

        assert resp.status_code == 200
        assert resp.json()["account"]["number"] == "123456-1"


# ────────────────────────────────────────────────────────────────────────────
# Accounts
# ────────────────────────────────────────────────────────────────────────────


class TestAccountEndpoints(_EndpointTest):
    """Tests for /api/v1/accounts endpoints."""

    factory_path = "simbank.api.v1.endpoints.accounts._get_ledger_service"

    @pytest.mark.asyncio
    async def test_get_account_200(self):
        self.mock_service.get_account.return_value = make_account(balance_cents=123_456)

        resp = await self._request("GET", f"/api/v1/accounts/{ACCOUNT_ID}")

        assert resp.status_code == 200
        data = resp.json()
        assert data["balance_cents"] == 123_456
        assert data["balance_display"] == "R$ 1.234,56"

    @pytest.mark.asyncio
    async def test_get_account_404(self):
        self.mock_service.get_account.side_effect = NotFoundException("Account", ACCOUNT_ID)

        resp = await self._request("GET", f"/api/v1/accounts/{ACCOUNT_ID}")

        assert resp.status_code == 404
        assert resp.json()["error"] is True

    @pytest.mark.asyncio
    async def test_get_account_422_bad_uuid(self):
        resp = await self._request("GET", "/api/v1/accounts/not-a-uuid")
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_deposit_201_returns_receipt(self):
        entry = make_entry(amount_cents=5_000)
        self.mock_service.deposit.return_value = LedgerReceipt(
            account=make_account(balance_cents=105_000), entry=entry
        )

        resp = await self._request(
            "POST",
            f"/api/v1/accounts/{ACCOUNT_ID}/deposit",
            json={"amount_cents": 5_000, "note": "salary"},
        )

        assert resp.status_code == 201
        data = resp.json()
        assert data["account"]["balance_cents"] == 105_000
        assert data["transaction"]["id"] == str(entry.id)
        assert data["transaction"]["kind"] == "DEPOSIT"
        self.mock_service.deposit.assert_awaited_once_with(ACCOUNT_ID, 5_000, "salary")

    @pytest.mark.asyncio
    async def test_deposit_422_non_positive_amount(self):
        resp = await self._request(
            "POST", f"/api/v1/accounts/{ACCOUNT_ID}/deposit", json={"amount_cents": 0}
        )

        assert resp.status_code == 422
        self.mock_service.deposit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_withdraw_422_insufficient_funds(self):
        self.mock_service.withdraw.side_effect = InsufficientFunds(ACCOUNT_ID, 10**9)

        resp = await self._request(
            "POST", f"/api/v1/accounts/{ACCOUNT_ID}/withdraw", json={"amount_cents": 10**9}
        )

        assert resp.status_code == 422
        assert "Insufficient balance" in resp.json()["message"]

    @pytest.mark.asyncio
    async def test_transfer_201(self):
        entry = make_entry(kind=EntryKind.TRANSFER, from_id=ACCOUNT_ID, to_id=ACCOUNT_ID_2)
        self.mock_service.transfer.return_value = LedgerReceipt(account=make_account(), entry=entry)

        resp = await self._request(
            "POST",
            f"/api/v1/accounts/{ACCOUNT_ID}/transfer",
            json={"to_account_number": "654321-3", "amount_cents": 1_000},
        )

        assert resp.status_code == 201
        assert resp.json()["transaction"]["to_id"] == str(ACCOUNT_ID_2)
        self.mock_service.transfer.assert_awaited_once_with(ACCOUNT_ID, "654321-3", 1_000, None)

    @pytest.mark.asyncio
    async def test_statement_passes_filters_and_cursor(self):
        entries = [make_entry(amount_cents=300), make_entry(amount_cents=200)]
        self.mock_service.statement.return_value = StatementPage(
            items=entries, next_cursor=entries[-1].id
        )

        resp = await self._request(
            "GET",
            f"/api/v1/accounts/{ACCOUNT_ID}/statement",
            params={"limit": 2, "kind": "in", "since_days": 0, "q": "salary"},
        )

        assert resp.status_code == 200
        data = resp.json()
        assert [i["amount_cents"] for i in data["items"]] == [300, 200]
        assert data["items"][0]["amount_display"] == "R$ 3,00"
        assert data["next_cursor"] == str(entries[-1].id)
        self.mock_service.statement.assert_awaited_once_with(
            ACCOUNT_ID, limit=2, cursor=None, kind="in", since_days=0, q="salary"
        )

    @pytest.mark.asyncio
    async def test_statement_422_limit_out_of_range(self):
        resp = await self._request(
            "GET", f"/api/v1/accounts/{ACCOUNT_ID}/statement", params={"limit": 51}
        )
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_statement_422_unknown_kind(self):
        self.mock_service.statement.side_effect = ValidationFailed(
            "Unknown statement kind 'FOO'", details=[{"field": "kind"}]
        )

        resp = await self._request(
            "GET", f"/api/v1/accounts/{ACCOUNT_ID}/statement", params={"kind": "foo"}
        )

        assert resp.status_code == 422
        assert resp.json()["details"] == [{"field": "kind"}]

    @pytest.mark.asyncio
    async def test_503_when_circuit_open(self):
        self.mock_service.get_account.side_effect = CircuitBreakerError("database", 12.0)

        resp = await self._request("GET", f"/api/v1/accounts/{ACCOUNT_ID}")

        assert resp.status_code == 503
        assert "database circuit is open" in resp.json()["message"]


# ────────────────────────────────────────────────────────────────────────────
# Pix
# ────────────────────────────────────────────────────────────────────────────


class TestPixEndpoints(_EndpointTest):
    """Tests for /api/v1/accounts/{id}/pix endpoints."""

    factory_path = "simbank.api.v1.endpoints.pix._get_pix_service"

    @pytest.mark.asyncio
    async def test_create_key_201(self):
        self.mock_service.create_key.return_value = make_pix_key(account_id=ACCOUNT_ID, is_primary=True)

        resp = await self._request(
            "POST",
            f"/api/v1/accounts/{ACCOUNT_ID}/pix/keys",
            json={"type": "CPF", "value": "123.456.789-01", "set_primary": True},
        )

        assert resp.status_code == 201
        assert resp.json()["is_primary"] is True
        self.mock_service.create_key.assert_awaited_once_with(
            ACCOUNT_ID, PixKeyType.CPF, "123.456.789-01", True
        )

    @pytest.mark.asyncio
    async def test_create_key_409(self):
        self.mock_service.create_key.side_effect = ConflictException("Pix key is already registered")

        resp = await self._request(
            "POST",
            f"/api/v1/accounts/{ACCOUNT_ID}/pix/keys",
            json={"type": "EMAIL", "value": "maria@example.com"},
        )

        assert resp.status_code == 409

    @pytest.mark.asyncio
    async def test_create_key_422_unknown_type(self):
        resp = await self._request(
            "POST", f"/api/v1/accounts/{ACCOUNT_ID}/pix/keys", json={"type": "IBAN", "value": "x"}
        )
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_delete_key_204(self):
        resp = await self._request("DELETE", f"/api/v1/accounts/{ACCOUNT_ID}/pix/keys/{KEY_ID}")

        assert resp.status_code == 204
        self.mock_service.delete_key.assert_awaited_once_with(ACCOUNT_ID, KEY_ID)

    @pytest.mark.asyncio
    async def test_send_returns_end_to_end_id(self):
        self.mock_service.send.return_value = "E2E-0123456789abcdef0123"

        resp = await self._request(
            "POST",
            f"/api/v1/accounts/{ACCOUNT_ID}/pix/send",
            json={"key_type": "CPF", "key": "12345678901", "amount_cents": 2_500},
        )

        assert resp.status_code == 201
        assert resp.json() == {"end_to_end_id": "E2E-0123456789abcdef0123"}

    @pytest.mark.asyncio
    async def test_send_404_unknown_key(self):
        self.mock_service.send.side_effect = NotFoundException("PixKey", "CPF:123*****901")

        resp = await self._request(
            "POST",
            f"/api/v1/accounts/{ACCOUNT_ID}/pix/send",
            json={"key_type": "CPF", "key": "12345678901", "amount_cents": 2_500},
        )

        assert resp.status_code == 404


# ────────────────────────────────────────────────────────────────────────────
# Cards
# ────────────────────────────────────────────────────────────────────────────


class TestCardEndpoints(_EndpointTest):
    """Tests for card endpoints."""

    factory_path = "simbank.api.v1.endpoints.cards._get_card_service"

    @pytest.mark.asyncio
    async def test_create_credit_card_without_limit_422(self):
        resp = await self._request(
            "POST",
            f"/api/v1/accounts/{ACCOUNT_ID}/cards",
            json={"type": "CREDIT", "holder_name": "MARIA SILVA"},
        )

        assert resp.status_code == 422
        self.mock_service.create_card.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_create_card_201_hides_pan_token(self):
        self.mock_service.create_card.return_value = make_card()

        resp = await self._request(
            "POST",
            f"/api/v1/accounts/{ACCOUNT_ID}/cards",
            json={"type": "CREDIT", "holder_name": "MARIA SILVA", "credit_limit_cents": 100_000},
        )

        assert resp.status_code == 201
        data = resp.json()
        assert data["last4"] == "1234"
        assert "pan_token" not in data

    @pytest.mark.asyncio
    async def test_block_card(self):
        self.mock_service.update_card.return_value = make_card(status=CardStatus.BLOCKED)

        resp = await self._request("PATCH", f"/api/v1/cards/{CARD_ID}", json={"action": "BLOCK"})

        assert resp.status_code == 200
        assert resp.json()["status"] == "BLOCKED"


# ────────────────────────────────────────────────────────────────────────────
# Investments
# ────────────────────────────────────────────────────────────────────────────


class TestInvestEndpoints(_EndpointTest):
    """Tests for investment endpoints."""

    factory_path = "simbank.api.v1.endpoints.invest._get_investment_service"

    @pytest.mark.asyncio
    async def test_list_products(self):
        self.mock_service.list_products.return_value = [make_product()]

        resp = await self._request("GET", "/api/v1/invest/products")

        assert resp.status_code == 200
        assert resp.json()[0]["code"] == "CDB-TEST"

    @pytest.mark.asyncio
    async def test_buy_201(self):
        self.mock_service.buy.return_value = make_position()

        resp = await self._request(
            "POST",
            "/api/v1/invest/positions",
            json={
                "account_id": str(ACCOUNT_ID),
                "product_id": str(PRODUCT_ID),
                "amount_cents": 10_000,
            },
        )

        assert resp.status_code == 201
        data = resp.json()
        assert data["id"] == str(POSITION_ID)
        assert data["status"] == "ACTIVE"
        self.mock_service.buy.assert_awaited_once_with(ACCOUNT_ID, PRODUCT_ID, 10_000)

    @pytest.mark.asyncio
    async def test_list_positions_valued(self):
        position = make_position()
        self.mock_service.list_positions.return_value = [
            PositionValuation(position=position, current_cents=10_080, gain_cents=80)
        ]

        resp = await self._request("GET", f"/api/v1/accounts/{ACCOUNT_ID}/positions")

        assert resp.status_code == 200
        item = resp.json()[0]
        assert item["current_cents"] == 10_080
        assert item["current_display"] == "R$ 100,80"
        assert item["product"]["code"] == "CDB-TEST"

    @pytest.mark.asyncio
    async def test_redeem_partial(self):
        self.mock_service.redeem.return_value = quote_redemption(10_000, 800, 10, 5_000, 0.01)

        resp = await self._request(
            "POST",
            f"/api/v1/invest/positions/{POSITION_ID}/redeem",
            json={"account_id": str(ACCOUNT_ID), "amount_cents": 5_000},
        )

        assert resp.status_code == 200
        data = resp.json()
        assert data["kind"] == "PARTIAL"
        assert data["requested_cents"] == 5_000
        assert data["net_cents"] == 5_000 - data["fee_cents"]
        self.mock_service.redeem.assert_awaited_once_with(POSITION_ID, ACCOUNT_ID, 5_000)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, -10, 1_000_000])
    async def test_redeem_full_for_zero_negative_or_over_cap_amount(self, amount):
        self.mock_service.redeem.return_value = quote_redemption(10_000, 800, 10, amount, 0.01)

        resp = await self._request(
            "POST",
            f"/api/v1/invest/positions/{POSITION_ID}/redeem",
            json={"account_id": str(ACCOUNT_ID), "amount_cents": amount},
        )

        assert resp.status_code == 200
        data = resp.json()
        assert data["kind"] == "FULL"
        assert data["requested_cents"] == 10_080
        assert data["remaining_current_cents"] == 0
        self.mock_service.redeem.assert_awaited_once_with(POSITION_ID, ACCOUNT_ID, amount)

    @pytest.mark.asyncio
    async def test_redeem_422_liquidity_window(self):
        self.mock_service.redeem.side_effect = LiquidityWindowPending(3, 1)

        resp = await self._request(
            "POST",
            f"/api/v1/invest/positions/{POSITION_ID}/redeem",
            json={"account_id": str(ACCOUNT_ID)},
        )

        assert resp.status_code == 422
        assert "3 min" in resp.json()["message"]
        self.mock_service.redeem.assert_awaited_once_with(POSITION_ID, ACCOUNT_ID, None)

    @pytest.mark.asyncio
    async def test_delete_position_requires_account(self):
        resp = await self._request("DELETE", f"/api/v1/invest/positions/{POSITION_ID}")
        assert resp.status_code == 422

        resp = await self._request(
            "DELETE",
            f"/api/v1/invest/positions/{POSITION_ID}",
            params={"account_id": str(ACCOUNT_ID)},
        )
        assert resp.status_code == 204

    @pytest.mark.asyncio
    async def test_cleanup_returns_count(self):
        self.mock_service.cleanup_closed.return_value = 2

        resp = await self._request("POST", f"/api/v1/accounts/{ACCOUNT_ID}/positions/cleanup")

        assert resp.status_code == 200
        assert resp.json() == {"deleted": 2}


# ────────────────────────────────────────────────────────────────────────────
# Health
# ────────────────────────────────────────────────────────────────────────────


class TestHealthEndpoint:
    @pytest.mark.asyncio
    async def test_health_ok_with_database(self, database):
        from simbank.main import app

        app.state.database = database
        try:
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                resp = await client.get("/health")
        finally:
            del app.state.database

        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["database"] is True
        assert data["circuit_breaker"]["state"] == "closed"
