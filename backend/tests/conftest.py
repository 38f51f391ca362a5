"""
Shared fixtures: in-memory SQLite, a fake chain client and a TestClient
running the real application lifespan with the background loops disabled.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BACKGROUND_TASKS_ENABLED"] = "false"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["FAUCET_URL"] = ""

import itertools
from decimal import Decimal

import pytest
from eth_account import Account
from fastapi.testclient import TestClient

from amanah.database import Base, SessionLocal, engine
from amanah.exceptions import ConfirmationTimeout
from amanah.main import app
from amanah.services.chain import ChainClient, GasEstimate, Receipt

# 100k gas at 10 gwei = 0.001 AVAX
DEFAULT_GAS = GasEstimate(gas=100_000, max_fee_per_gas=10_000_000_000, max_priority_fee_per_gas=1_000_000_000)


class FakeChain:
    """In-memory stand-in for ChainClient. Transfers move `amount` only."""

    create_account = staticmethod(ChainClient.create_account)
    is_address = staticmethod(ChainClient.is_address)
    to_checksum = staticmethod(ChainClient.to_checksum)

    def __init__(self):
        self.balances: dict[str, Decimal] = {}
        self.gas = DEFAULT_GAS
        self.sent: list[dict] = []
        self.failing_addresses: set[str] = set()
        self.send_error: Exception | None = None
        self.receipt_status = 1
        self.time_out = False
        self.confirm_error: Exception | None = None
        self._blocks = itertools.count(1000)

    async def get_balance(self, address: str) -> Decimal:
        if address in self.failing_addresses:
            raise ConnectionError("node unreachable")
        return self.balances.get(address, Decimal("0"))

    async def estimate_transfer(self, from_address, to_address, amount):
        return self.gas

    async def send_transfer(self, private_key, to_address, amount, estimate, gas_limit):
        if self.send_error:
            raise self.send_error
        sender = Account.from_key(private_key).address
        tx_hash = "0x" + f"{len(self.sent) + 1:064x}"
        self.sent.append({
            "from": sender, "to": to_address, "amount": amount,
            "gas_limit": gas_limit, "hash": tx_hash,
        })
        if self.receipt_status == 1:
            self.balances[sender] = self.balances.get(sender, Decimal("0")) - amount
            self.balances[to_address] = self.balances.get(to_address, Decimal("0")) + amount
        return tx_hash

    async def wait_for_confirmations(self, tx_hash, confirmations, timeout):
        if self.time_out:
            raise ConfirmationTimeout(details={"txHash": tx_hash})
        if self.confirm_error:
            raise self.confirm_error
        return Receipt(tx_hash=tx_hash, block_number=next(self._blocks), gas_used=21000,
                       status=self.receipt_status)


@pytest.fixture
def chain() -> FakeChain:
    return FakeChain()


@pytest.fixture
def client(chain):
    Base.metadata.drop_all(bind=engine)
    with TestClient(app) as c:
        app.state.amanah.chain = chain
        yield c
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def state(client):
    return app.state.amanah


def register(client: TestClient, username: str, password: str = "s3cret-pass") -> dict:
    resp = client.post("/api/register", json={
        "username": username,
        "password": password,
        "email": f"{username}@amanah.io",
        "phone": f"+1555{sum(map(ord, username)):07d}",
        "fullName": username.title(),
        "country": "MY",
    })
    assert resp.status_code == 200, resp.text
    login = client.post("/api/login", json={"username": username, "password": password})
    assert login.status_code == 200, login.text
    return {"Authorization": f"Bearer {login.json()['access_token']}"}


def create_wallet(client: TestClient, headers: dict, wallet_type: str = "daily", name: str = "Daily") -> str:
    resp = client.post("/api/wallets", json={"name": name, "type": wallet_type}, headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()["address"]


@pytest.fixture
def alice(client, chain):
    headers = register(client, "alice")
    address = create_wallet(client, headers)
    chain.balances[address] = Decimal("10")
    return {"headers": headers, "address": address}


@pytest.fixture
def bob(client, chain):
    headers = register(client, "bob")
    address = create_wallet(client, headers)
    return {"headers": headers, "address": address}
