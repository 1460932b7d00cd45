import pytest
import uvicorn

from broker.config import HOST, PORT
from broker.main import run


PREFIX = "/api/v1"
ACCOUNT = "9999999"


def transaction(**kwargs):
    body = {"accountNumber": ACCOUNT, "ticker": "FERR", "orderType": "MARKET", "side": "BUY"}
    body.update(kwargs)
    return body


async def test_create_transaction(client):
    response = await client.post(f"{PREFIX}/broker/transactions", json=transaction(quantity=10))
    assert response.status_code == 201
    assert response.json() == {"success": True}

    portfolio = (await client.get(f"{PREFIX}/broker/portfolio/{ACCOUNT}")).json()
    assert portfolio["cash"] == 97825.0
    assert portfolio["assetPositions"][0]["quantity"] == 55


async def test_create_transaction_insufficient_funds(client):
    response = await client.post(f"{PREFIX}/broker/transactions", json=transaction(quantity=100_000))
    assert response.status_code == 400
    assert "insufficient funds" in response.json()["detail"]


async def test_create_transaction_insufficient_stock(client):
    response = await client.post(f"{PREFIX}/broker/transactions", json=transaction(side="SELL", quantity=46))
    assert response.status_code == 400
    assert "Insufficient stock" in response.json()["detail"]


@pytest.mark.parametrize("body", [
    transaction(),
    transaction(quantity=0),
    transaction(quantity=1_000_001),
    transaction(totalAmount=0.5),
    transaction(orderType="LIMIT", quantity=1),
    transaction(orderType="LIMIT", quantity=1, price=0),
    transaction(side="CASH_IN", quantity=1),
    transaction(orderType="STOP", quantity=1),
    transaction(accountNumber="", quantity=1),
    transaction(ticker="TOOLONGTICKER", quantity=1),
])
async def test_create_transaction_validation(client, body):
    response = await client.post(f"{PREFIX}/broker/transactions", json=body)
    assert response.status_code == 400
    payload = response.json()
    assert payload["error"] == "Bad Request"
    assert payload["statusCode"] == 400
    assert payload["message"]


async def test_create_transaction_write_failure(client, seeded, fetch_orders, failing_cash_leg):
    before = len(await fetch_orders(seeded.user_id))

    response = await client.post(f"{PREFIX}/broker/transactions", json=transaction(quantity=10))
    assert response.status_code == 500
    assert response.json()["detail"] == "No orders were created. Something went wrong."

    assert len(await fetch_orders(seeded.user_id)) == before


async def test_create_transaction_unknown_account(client):
    response = await client.post(
        f"{PREFIX}/broker/transactions", json=transaction(accountNumber="0000000", quantity=1)
    )
    assert response.status_code == 404
    assert response.json()["detail"] == "No user found with the provided account number: 0000000"


async def test_create_transaction_unknown_ticker(client):
    response = await client.post(f"{PREFIX}/broker/transactions", json=transaction(ticker="XXXX", quantity=1))
    assert response.status_code == 404


async def test_cancel_transaction(client, seeded):
    body = {"accountNumber": ACCOUNT, "secondaryAction": "CANCEL", "reason": "too expensive"}

    response = await client.request(
        "DELETE", f"{PREFIX}/broker/transactions/cancel/{seeded.pending_limit_id}", json=body
    )
    assert response.status_code == 201
    assert response.json() == {"success": True}

    again = await client.request(
        "DELETE", f"{PREFIX}/broker/transactions/cancel/{seeded.pending_limit_id}", json=body
    )
    assert again.status_code == 400


async def test_cancel_transaction_bad_requests(client, seeded):
    body = {"accountNumber": ACCOUNT, "secondaryAction": "CANCEL"}

    missing = await client.request("DELETE", f"{PREFIX}/broker/transactions/cancel/99999", json=body)
    assert missing.status_code == 404

    bad_id = await client.request("DELETE", f"{PREFIX}/broker/transactions/cancel/0", json=body)
    assert bad_id.status_code == 400

    bad_action = await client.request(
        "DELETE", f"{PREFIX}/broker/transactions/cancel/{seeded.pending_limit_id}",
        json={"accountNumber": ACCOUNT, "secondaryAction": "REFUND"}
    )
    assert bad_action.status_code == 400


async def test_list_transactions(client):
    response = await client.get(f"{PREFIX}/broker/transactions/account/{ACCOUNT}")
    assert response.status_code == 200

    payload = response.json()
    assert payload["total"] == 5
    assert payload["page"] == 1
    assert payload["limit"] == 10
    assert payload["totalPages"] == 1
    assert [order["side"] for order in payload["data"]] == ["SELL", "BUY", "BUY", "SELL", "BUY"]
    assert payload["data"][0]["status"] == "REJECTED"
    assert payload["data"][0]["instrument"]["ticker"] == "FERR"


async def test_list_transactions_pagination(client):
    response = await client.get(f"{PREFIX}/broker/transactions/account/{ACCOUNT}", params={"page": 2, "limit": 2})
    payload = response.json()
    assert payload["totalPages"] == 3
    assert len(payload["data"]) == 2

    out_of_range = await client.get(f"{PREFIX}/broker/transactions/account/{ACCOUNT}", params={"limit": 101})
    assert out_of_range.status_code == 400


async def test_list_transactions_unknown_account(client):
    response = await client.get(f"{PREFIX}/broker/transactions/account/0000000")
    assert response.status_code == 404


async def test_portfolio(client, seeded):
    response = await client.get(f"{PREFIX}/broker/portfolio/{ACCOUNT}")
    assert response.status_code == 200
    assert response.json() == {
        "total": 99500.0,
        "cash": 98185.0,
        "assetPositions": [
            {
                "id": seeded.ferr_id,
                "ticker": "FERR",
                "name": "Ferrum S.A.",
                "quantity": 45,
                "positionValue": 1620.0,
                "totalReturn": 14.54,
            }
        ],
    }


async def test_portfolio_unknown_account(client):
    response = await client.get(f"{PREFIX}/broker/portfolio/0000000")
    assert response.status_code == 404


async def test_search_assets(client):
    response = await client.get(f"{PREFIX}/broker/assets/search")
    payload = response.json()
    assert payload["total"] == 4
    assert [instrument["ticker"] for instrument in payload["data"]] == ["ARS", "FERR", "BMA", "NOMD"]
    assert payload["data"][0]["type"] == "CURRENCY"


async def test_search_assets_by_ticker_or_name(client):
    by_ticker = (await client.get(f"{PREFIX}/broker/assets/search", params={"ticker": "ferr"})).json()
    assert [instrument["ticker"] for instrument in by_ticker["data"]] == ["FERR"]

    by_name = (await client.get(f"{PREFIX}/broker/assets/search", params={"name": "macro"})).json()
    assert [instrument["ticker"] for instrument in by_name["data"]] == ["BMA"]

    either = (await client.get(
        f"{PREFIX}/broker/assets/search", params={"ticker": "NOMD", "name": "Macro"}
    )).json()
    assert either["total"] == 2


@pytest.mark.parametrize("params", [{"ticker": "%"}, {"ticker": "_"}, {"name": "%"}, {"name": "___"}])
async def test_search_assets_matches_wildcards_literally(client, params):
    response = await client.get(f"{PREFIX}/broker/assets/search", params=params)
    assert response.status_code == 200
    assert response.json()["total"] == 0


async def test_search_assets_by_name_fragment(client):
    payload = (await client.get(f"{PREFIX}/broker/assets/search", params={"name": "S.A."})).json()
    assert [instrument["ticker"] for instrument in payload["data"]] == ["FERR", "BMA", "NOMD"]


def test_run_serves_the_app(monkeypatch):
    calls = []
    monkeypatch.setattr(uvicorn, "run", lambda *args, **kwargs: calls.append((args, kwargs)))

    run()

    assert calls == [(("broker.main:app",), {"host": HOST, "port": PORT})]
