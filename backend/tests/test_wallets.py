from decimal import Decimal

from eth_account import Account

from amanah.core.security import decrypt_key
from amanah.models.wallet import Wallet
from conftest import create_wallet, register


def test_create_wallet_returns_address_and_balance(client, chain):
    headers = register(client, "amina")
    resp = client.post("/api/wallets", json={"name": "Daily", "type": "daily"}, headers=headers)

    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    assert chain.is_address(data["address"])
    assert data["balance"] == "0"


def test_private_key_is_stored_encrypted(client, db):
    headers = register(client, "amina")
    address = create_wallet(client, headers)

    wallet = db.query(Wallet).filter(Wallet.address == address).one()
    assert not wallet.private_key.startswith("0x")
    assert Account.from_key(decrypt_key(wallet.private_key)).address == address


def test_create_wallet_rejects_unknown_type(client):
    headers = register(client, "amina")
    resp = client.post("/api/wallets", json={"name": "Savings", "type": "investments"}, headers=headers)

    assert resp.status_code == 400
    assert resp.json()["error"] == "INVALID_WALLET_TYPE"
    assert "daily" in resp.json()["message"]


def test_only_one_spending_wallet_per_user(client):
    headers = register(client, "amina")
    create_wallet(client, headers)
    create_wallet(client, headers, wallet_type="family", name="Family")

    resp = client.post("/api/wallets", json={"name": "Second", "type": "daily"}, headers=headers)
    assert resp.status_code == 400
    assert resp.json()["error"] == "SPENDING_WALLET_EXISTS"


def test_create_wallet_fails_when_chain_is_down(client, chain, db, monkeypatch):
    headers = register(client, "amina")

    async def unreachable(address):
        raise ConnectionError("node unreachable")

    monkeypatch.setattr(chain, "get_balance", unreachable)
    resp = client.post("/api/wallets", json={"name": "Daily", "type": "daily"}, headers=headers)

    assert resp.status_code == 500
    assert resp.json()["error"] == "WALLET_CREATION_FAILED"
    assert db.query(Wallet).count() == 0


def test_list_wallets_refreshes_balance_and_adds_usd(client, chain, state):
    headers = register(client, "amina")
    address = create_wallet(client, headers)
    chain.balances[address] = Decimal("2.5")
    state.price.set(Decimal("20"))

    resp = client.get("/api/wallets", headers=headers)

    assert resp.status_code == 200
    [wallet] = resp.json()
    assert wallet["address"] == address
    assert wallet["balance"] == "2.5"
    assert wallet["usdBalance"] == "50"
    assert "private_key" not in wallet and "privateKey" not in wallet


def test_list_wallets_keeps_cached_balance_when_refresh_fails(client, chain):
    headers = register(client, "amina")
    address = create_wallet(client, headers)
    chain.balances[address] = Decimal("4")
    client.get("/api/wallets", headers=headers)

    chain.failing_addresses.add(address)
    resp = client.get("/api/wallets", headers=headers)

    assert resp.status_code == 200
    assert resp.json()[0]["balance"] == "4"


def test_list_wallets_only_returns_own_wallets(client):
    amina = register(client, "amina")
    yusuf = register(client, "yusuf")
    create_wallet(client, amina)
    create_wallet(client, yusuf)
    create_wallet(client, yusuf, wallet_type="zakat", name="Zakat")

    assert len(client.get("/api/wallets", headers=amina).json()) == 1
    assert len(client.get("/api/wallets", headers=yusuf).json()) == 2
