"""
Smoke test for scripts/seed_data.py against a throwaway SQLite file.
"""

import importlib.util
import logging
from pathlib import Path

import pytest

from storefront_kernel.db.engine import Database
from storefront_kernel.selectors.inventory_selector import InventorySelector
from storefront_kernel.services.cart_aggregator import CartAggregator

SCRIPT = Path(__file__).resolve().parents[2] / "scripts" / "seed_data.py"


@pytest.fixture
def seed_module():
    spec = importlib.util.spec_from_file_location("seed_data", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    yield module
    # the script silences logging for its console output
    logging.disable(logging.NOTSET)


def test_seeds_catalog_and_demo_cart(tmp_path, seed_module, capsys):
    url = f"sqlite:///{tmp_path / 'seed.db'}"

    assert seed_module.main(["--database-url", url]) == 0

    database = Database.from_url(url)
    session = database.session()
    try:
        rows = InventorySelector(session).summary(low_stock_threshold=10)
        assert len(rows) == 5
        assert sorted(row.stock_quantity for row in rows) == [0, 2, 5, 10, 20]
        assert InventorySelector(session).find_ledger_discrepancies() == []
        cart = CartAggregator(session).snapshot(seed_module.DEMO_CUSTOMER)
        assert cart.total_items == 3
    finally:
        session.close()
        database.dispose()
    assert "Seeded 5 variants" in capsys.readouterr().out


def test_no_cart_flag(tmp_path, seed_module):
    url = f"sqlite:///{tmp_path / 'seed.db'}"

    assert seed_module.main(["--database-url", url, "--no-cart"]) == 0

    database = Database.from_url(url)
    session = database.session()
    try:
        assert CartAggregator(session).snapshot(seed_module.DEMO_CUSTOMER).is_empty
    finally:
        session.close()
        database.dispose()
