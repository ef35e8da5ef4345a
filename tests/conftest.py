import os, sys, pathlib
from datetime import date

ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))
os.environ.setdefault("APP_ENV", "test")

import pytest

from rentflow.config import EngineConfig, set_config
from rentflow.models.order import OrderItem, RentalOrder
from rentflow.models.store import OrderStore
from rentflow.utils.constants import OrderStatus


@pytest.fixture
def config(tmp_path):
    return EngineConfig(data_path=str(tmp_path / "orders.pkl"))


@pytest.fixture(autouse=True)
def store(monkeypatch, config):
    """
    A fresh on-disk store per test, installed as the singleton and patched
    into services.common._store() so every service sees the SAME object.
    """
    from rentflow.services import common as common_mod

    set_config(config)
    st = OrderStore(config.data_path)
    monkeypatch.setattr(OrderStore, "_inst", st)
    monkeypatch.setattr(common_mod, "_store", lambda: st, raising=True)
    yield st
    set_config(None)


@pytest.fixture
def make_order(store):
    """
    Store an order directly in a given status. Defaults mirror the worked
    example: 2024-01-01 -> 2024-01-05, 10000 for the window.
    """

    def _make(status=OrderStatus.IN_USE, start=date(2024, 1, 1), end=date(2024, 1, 5),
              amount=10000.0, total=None, deposit=None, default_days=None, client="Acme"):
        days = default_days or (end - start).days + 1
        order = RentalOrder(
            rental_start_date=start,
            rental_end_date=end,
            items=[OrderItem("tent", 1, amount / days)],
            status=status,
            base_amount=amount,
            total_amount=amount if total is None else total,
            default_chargeable_days=days,
            deposit=deposit,
            client=client,
        )
        return store.create_order(order)

    return _make


@pytest.fixture
def client(config):
    from rentflow import create_app
    app = create_app(config)
    app.config.update(TESTING=True)
    with app.test_client() as c:
        yield c
