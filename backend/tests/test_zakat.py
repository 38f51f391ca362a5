from decimal import Decimal

from amanah.core.config import settings
from amanah.models.transaction import Transaction
from conftest import create_wallet, register


def sync_cached_balances(client, headers):
    assert client.get("/api/wallets", headers=headers).status_code == 200


def test_pay_zakat_with_exact_balance(client, chain, db, alice, bob):
    sync_cached_balances(client, alice["headers"])

    resp = client.post("/api/transactions/zakat", json={"amount": "10"}, headers=alice["headers"])

    assert resp.status_code == 200, resp.text
    assert resp.json()["success"] is True

    [sent] = chain.sent
    assert sent["to"] == chain.to_checksum(settings.ZAKAT_ADDRESS)
    assert sent["amount"] == Decimal("10")

    [tx] = db.query(Transaction).all()
    assert tx.type == "zakat"
    assert tx.status == "completed"
    assert tx.from_user_id == tx.to_user_id
    assert tx.meta["txHash"] == resp.json()["txHash"]

    # nothing shows up for anybody else
    assert client.get("/api/transactions", headers=bob["headers"]).json() == []


def test_zakat_checks_cached_balance(client, chain, db, alice):
    # cached balance is still 0 until a refresh
    resp = client.post("/api/transactions/zakat", json={"amount": "1"}, headers=alice["headers"])

    assert resp.status_code == 400
    assert resp.json()["error"] == "INSUFFICIENT_FUNDS"
    assert chain.sent == []
    assert db.query(Transaction).count() == 0


def test_zakat_without_spending_wallet(client, chain):
    headers = register(client, "carol")
    resp = client.post("/api/transactions/zakat", json={"amount": "1"}, headers=headers)

    assert resp.status_code == 400
    assert chain.sent == []


def test_zakat_timeout_writes_nothing(client, chain, db, alice):
    sync_cached_balances(client, alice["headers"])
    chain.time_out = True

    resp = client.post("/api/transactions/zakat", json={"amount": "1"}, headers=alice["headers"])

    assert resp.status_code == 408
    assert db.query(Transaction).count() == 0


def test_zakat_summary_above_nisab(client, chain, state, alice):
    family = create_wallet(client, alice["headers"], wallet_type="family", name="Family")
    chain.balances[family] = Decimal("190")
    sync_cached_balances(client, alice["headers"])
    state.price.set(Decimal("25"))

    resp = client.get("/api/zakat", headers=alice["headers"])

    assert resp.status_code == 200
    assert resp.json() == {
        "totalWealth": "200",
        "totalWealthUsd": "5000",
        "nisabThresholdUsd": "5000",
        "zakatRate": "0.025",
        "zakatAmount": "5",
        "eligible": True,
    }


def test_zakat_summary_below_nisab(client, state, alice):
    sync_cached_balances(client, alice["headers"])
    state.price.set(Decimal("25"))

    data = client.get("/api/zakat", headers=alice["headers"]).json()

    assert data["totalWealth"] == "10"
    assert data["zakatAmount"] == "0.25"
    assert data["eligible"] is False


def test_zakat_amount_finer_than_one_wei_is_rejected(client, chain, alice):
    sync_cached_balances(client, alice["headers"])
    resp = client.post("/api/transactions/zakat", json={"amount": "0.0000000000000000001"},
                       headers=alice["headers"])

    assert resp.status_code == 422
    assert chain.sent == []
