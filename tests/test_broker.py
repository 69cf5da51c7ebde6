from unittest.mock import MagicMock
from urllib.parse import parse_qs, urlparse

import pytest

from conftest import TEST_USER_ID
from valeris.app.broker.connections import disconnect, list_connections
from valeris.app.broker.etrade_oauth import ETradeOAuth
from valeris.app.broker.proxy import (
    ETRADE_NOT_IMPLEMENTED,
    ORDER_NOT_IMPLEMENTED,
    BrokerProxy,
    order_row,
    position_row,
)
from valeris.app.broker.schwab_oauth import SchwabOAuth
from valeris.app.common.config import reset_config
from valeris.app.common.errors import NotFoundError, UpstreamError


def json_response(payload, ok=True):
    response = MagicMock(ok=ok, reason="Bad Request", text="denied")
    response.json.return_value = payload
    return response


@pytest.fixture
def connection(db):
    conn = db.seed(
        "broker_connections",
        {"user_id": TEST_USER_ID, "broker_name": "schwab", "status": "connected",
         "account_id": "ACC1", "created_at": "2024-01-01"},
    )
    db.seed(
        "broker_credentials",
        {"connection_id": conn["id"], "access_token_encrypted": "tok",
         "refresh_token_encrypted": "refresh-1"},
    )
    return conn


@pytest.fixture
def schwab_env(monkeypatch):
    monkeypatch.setenv("SCHWAB_APP_KEY", "app-key")
    monkeypatch.setenv("SCHWAB_APP_SECRET", "app-secret")
    reset_config()


class TestRowMapping:
    def test_position_row(self):
        row = position_row(
            "c1",
            {"instrument": {"symbol": "AAPL"}, "longQuantity": 10, "averagePrice": 150,
             "marketValue": 1700, "currentDayProfitLoss": 25},
        )
        assert row["symbol"] == "AAPL"
        assert row["current_price"] == 170
        assert row["position_type"] == "long"

    def test_position_row_without_quantity(self):
        row = position_row("c1", {})
        assert row["symbol"] == "UNKNOWN"
        assert row["current_price"] == 0
        assert row["position_type"] == "short"

    def test_order_row(self):
        row = order_row(
            "c1",
            {"orderId": 42, "orderType": "LIMIT", "quantity": 5, "status": "FILLED",
             "orderLegCollection": [{"instruction": "SELL", "instrument": {"symbol": "MSFT"}}]},
        )
        assert row["broker_order_id"] == "42"
        assert row["side"] == "SELL"
        assert row["symbol"] == "MSFT"


class TestBrokerProxy:
    def test_sync_positions(self, db, connection):
        session = MagicMock()
        session.get.return_value = json_response(
            {"positions": [
                {"instrument": {"symbol": "AAPL"}, "longQuantity": 1, "marketValue": 190},
                {"instrument": {"symbol": "MSFT"}, "longQuantity": 2, "marketValue": 800},
            ]}
        )
        result = BrokerProxy(db, session).handle(
            TEST_USER_ID, {"connection_id": connection["id"], "action": "sync_positions"}
        )

        assert result["success"]
        assert result["synced"] == 2
        assert session.get.call_args.args[0].endswith("/trader/v1/accounts/ACC1/positions")
        assert session.get.call_args.kwargs["headers"]["Authorization"] == "Bearer tok"
        assert {p["symbol"] for p in db.rows("broker_positions")} == {"AAPL", "MSFT"}
        log = db.rows("broker_sync_log")[0]
        assert log["status"] == "success"
        assert log["sync_type"] == "positions"
        assert log["records_synced"] == 2
        assert db.rows("broker_connections")[0]["last_synced_at"]

    def test_sync_is_idempotent(self, db, connection):
        session = MagicMock()
        session.get.return_value = json_response([{"orderId": 1, "status": "WORKING"}])
        proxy = BrokerProxy(db, session)
        request = {"connection_id": connection["id"], "action": "sync_orders"}
        proxy.handle(TEST_USER_ID, request)
        proxy.handle(TEST_USER_ID, request)
        assert len(db.rows("broker_orders")) == 1

    def test_sync_balances(self, db, connection):
        session = MagicMock()
        session.get.return_value = json_response(
            {"securitiesAccount": {"currentBalances": {"cashBalance": 1000}}}
        )
        result = BrokerProxy(db, session).handle(
            TEST_USER_ID, {"connection_id": connection["id"], "action": "sync_balances"}
        )
        assert result["balance"] == {"cashBalance": 1000}
        assert "synced" not in result
        assert db.rows("broker_sync_log")[0]["sync_type"] == "balances"
        assert db.rows("broker_sync_log")[0]["records_synced"] == 1

    def test_upstream_failure_is_logged(self, db, connection):
        session = MagicMock()
        session.get.return_value = json_response({}, ok=False)
        result = BrokerProxy(db, session).handle(
            TEST_USER_ID, {"connection_id": connection["id"], "action": "sync_positions"}
        )
        assert not result["success"]
        assert "Schwab API error" in result["error"]
        assert db.rows("broker_sync_log")[0]["status"] == "failed"

    def test_etrade_sync_not_implemented(self, db):
        conn = db.seed("broker_connections", {"user_id": TEST_USER_ID, "broker_name": "etrade"})
        db.seed("broker_credentials", {"connection_id": conn["id"], "access_token_encrypted": "t"})
        session = MagicMock()
        result = BrokerProxy(db, session).handle(
            TEST_USER_ID, {"connection_id": conn["id"], "action": "sync_orders"}
        )
        assert result["error"] == ETRADE_NOT_IMPLEMENTED
        session.get.assert_not_called()

    def test_orders_not_implemented(self, db, connection):
        proxy = BrokerProxy(db, MagicMock())
        placed = proxy.handle(
            TEST_USER_ID,
            {"connection_id": connection["id"], "action": "place_order", "order_data": {"qty": 1}},
        )
        assert placed["success"] is False
        assert placed["message"] == ORDER_NOT_IMPLEMENTED

        with pytest.raises(ValueError, match="order_id"):
            proxy.handle(TEST_USER_ID, {"connection_id": connection["id"], "action": "cancel_order"})

    def test_validation(self, db, connection):
        proxy = BrokerProxy(db, MagicMock())
        with pytest.raises(ValueError):
            proxy.handle(TEST_USER_ID, {"action": "sync_orders"})
        with pytest.raises(ValueError):
            proxy.handle(TEST_USER_ID, {"connection_id": connection["id"], "action": "withdraw"})
        with pytest.raises(NotFoundError):
            proxy.handle("intruder", {"connection_id": connection["id"], "action": "sync_orders"})


class TestConnections:
    def test_list_is_scoped_to_user(self, db, connection):
        db.seed("broker_connections", {"user_id": "other", "broker_name": "etrade"})
        assert [c["id"] for c in list_connections(db, TEST_USER_ID)] == [connection["id"]]

    def test_disconnect_drops_credentials(self, db, connection):
        disconnect(db, TEST_USER_ID, connection["id"])
        assert db.rows("broker_connections")[0]["status"] == "disconnected"
        assert db.rows("broker_credentials") == []

    def test_disconnect_unknown(self, db):
        with pytest.raises(NotFoundError):
            disconnect(db, TEST_USER_ID, "missing")


class TestSchwabOAuth:
    def test_requires_credentials(self, db):
        with pytest.raises(ValueError, match="not configured"):
            SchwabOAuth(db)

    def test_authorize_url(self, db, schwab_env):
        result = SchwabOAuth(db, MagicMock()).handle(TEST_USER_ID, {"action": "authorize"})
        query = parse_qs(urlparse(result["authorizationUrl"]).query)
        assert query["client_id"] == ["app-key"]
        assert query["response_type"] == ["code"]
        assert query["state"] == [result["state"]]

    def test_exchange_code_stores_connection(self, db, schwab_env):
        session = MagicMock()
        session.post.return_value = json_response(
            {"access_token": "at", "refresh_token": "rt", "expires_in": 1800, "scope": "trading"}
        )
        session.get.return_value = json_response([{"accountNumber": "999", "type": "cash"}])

        result = SchwabOAuth(db, session).handle(TEST_USER_ID, {"action": "token", "code": "abc"})

        assert result["accountId"] == "999"
        assert session.post.call_args.kwargs["auth"] == ("app-key", "app-secret")
        assert session.post.call_args.kwargs["data"]["grant_type"] == "authorization_code"
        conn = db.rows("broker_connections")[0]
        assert conn["account_type"] == "cash"
        assert db.rows("broker_credentials")[0]["connection_id"] == conn["id"]

    def test_exchange_failure(self, db, schwab_env):
        session = MagicMock()
        session.post.return_value = json_response({}, ok=False)
        with pytest.raises(UpstreamError):
            SchwabOAuth(db, session).exchange_code(TEST_USER_ID, "abc")

    def test_refresh_keeps_refresh_token(self, db, connection, schwab_env):
        session = MagicMock()
        session.post.return_value = json_response({"access_token": "new", "expires_in": 60})
        SchwabOAuth(db, session).refresh(TEST_USER_ID, connection["id"])

        creds = db.rows("broker_credentials")[0]
        assert creds["access_token_encrypted"] == "new"
        assert creds["refresh_token_encrypted"] == "refresh-1"

    def test_unknown_action(self, db, schwab_env):
        with pytest.raises(ValueError):
            SchwabOAuth(db, MagicMock()).handle(TEST_USER_ID, {"action": "steal"})


class TestETradeOAuth:
    def test_request_token_instructions(self, db, monkeypatch):
        monkeypatch.setenv("ETRADE_CONSUMER_KEY", "ck")
        monkeypatch.setenv("ETRADE_CONSUMER_SECRET", "cs")
        reset_config()
        result = ETradeOAuth(db).handle(TEST_USER_ID, {"action": "request_token"})
        assert result["sandbox"] is True
        assert result["authUrl"].startswith("https://etwssandbox.etrade.com")
        assert len(result["instructions"]) == 5

    def test_access_token_needs_verifier(self, db, monkeypatch):
        monkeypatch.setenv("ETRADE_CONSUMER_KEY", "ck")
        monkeypatch.setenv("ETRADE_CONSUMER_SECRET", "cs")
        reset_config()
        with pytest.raises(ValueError):
            ETradeOAuth(db).handle(TEST_USER_ID, {"action": "access_token", "oauth_token": "t"})
