"""
维护脚本测试
"""
from datetime import datetime
from decimal import Decimal

from conftest import make_item, make_log, make_product
from shopledger.db.init_db import init_db, seed_sample_data
from shopledger.schemas.inventory import MovementType
from shopledger.scripts.check_stock_ledger import find_ledger_gaps
from shopledger.services.gateway import StoreGateway
from shopledger.services.ledger import apply_movement


class TestFindLedgerGaps:

    def test_engine_output_is_continuous(self):
        products, logs = [make_product(stock=0, import_price=Decimal("0"))], []
        for day, (movement_type, quantity) in enumerate(
            [(MovementType.IMPORT, 10), (MovementType.EXPORT, 4), (MovementType.IMPORT, 2)], start=1
        ):
            result = apply_movement(products, [make_item(products[0], quantity, 100)], movement_type,
                                    date=datetime(2024, 1, day), existing_logs=logs)
            products, logs = result.products, result.logs
        assert find_ledger_gaps(products, logs) == []

    def test_broken_chain(self):
        product = make_product(stock=8)
        logs = [
            make_log("L1", "P1", MovementType.IMPORT, 10, 0, 10, datetime(2024, 1, 1)),
            make_log("L2", "P1", MovementType.EXPORT, 2, 9, 7, datetime(2024, 1, 2)),
        ]
        problems = find_ledger_gaps([product], logs)
        assert len(problems) == 2
        assert "L2" in problems[0]
        assert "当前库存 8" in problems[1]

    def test_product_without_logs(self):
        assert find_ledger_gaps([make_product(stock=5)], []) == []


class TestInitDb:

    def test_seed_once(self, engine, session_factory):
        init_db(engine, seed=True)
        assert seed_sample_data(engine) is False

        gateway = StoreGateway(session_factory)
        products = gateway.get_products()
        assert len(products) == 5
        assert len(gateway.get_orders()) == 3
        assert gateway.get_users()[0].email == "admin@shopledger.vn"
        assert find_ledger_gaps(products, gateway.get_inventory_logs()) == []
