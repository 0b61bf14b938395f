"""
Concurrency tests against a file-backed SQLite database.

Each worker runs in its own thread with its own app context (and so its
own session and connection).
"""
import os
import tempfile
import threading
import unittest

from pos_app import create_app
from pos_app.errors import InsufficientStock
from pos_app.extensions import db
from pos_app.models import Order, Product
from pos_app.services import catalog_service, checkout_service, inventory_service


class ConcurrencyTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        db_path = os.path.join(self.tmpdir.name, "concurrency.db")
        self.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
            "RETRY_BACKOFF_BASE": 0.01,
        })

        with self.app.app_context():
            db.drop_all()
            db.create_all()

            product = catalog_service.create_product(
                patch={"sku": "CONCUR-1", "name": "Concurrent Product", "price_cents": 1000},
                principal_id="system",
                opening_quantity=10,
            )
            self.product_id = product.id

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()
            db.session.remove()
            db.engine.dispose()
        self.tmpdir.cleanup()

    def _run(self, targets):
        barrier = threading.Barrier(len(targets))
        results = []
        lock = threading.Lock()

        def worker(principal_id, quantity):
            with self.app.app_context():
                try:
                    barrier.wait()
                    order = checkout_service.place_order(
                        principal_id,
                        [{"product_id": self.product_id, "quantity": quantity}],
                        "cash",
                    )
                    with lock:
                        results.append(order.order_number)
                except Exception as exc:
                    with lock:
                        results.append(exc)
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=worker, args=args) for args in targets]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return results

    def test_last_units_sold_once(self):
        results = self._run([("cashier-1", 6), ("cashier-2", 6)])

        placed = [r for r in results if isinstance(r, str)]
        rejected = [r for r in results if isinstance(r, InsufficientStock)]
        self.assertEqual(len(placed), 1)
        self.assertEqual(len(rejected), 1)
        self.assertEqual(rejected[0].code, "INSUFFICIENT_STOCK")

        with self.app.app_context():
            self.assertEqual(db.session.get(Product, self.product_id).quantity_on_hand, 4)
            self.assertEqual(db.session.query(Order).count(), 1)
            self.assertEqual(inventory_service.find_discrepancies(), [])

    def test_two_checkouts_for_all_stock(self):
        results = self._run([("cashier-1", 10), ("cashier-2", 10)])

        placed = [r for r in results if isinstance(r, str)]
        rejected = [r for r in results if isinstance(r, InsufficientStock)]
        self.assertEqual(len(placed), 1)
        self.assertEqual(len(rejected), 1)

        with self.app.app_context():
            self.assertEqual(db.session.get(Product, self.product_id).quantity_on_hand, 0)
            self.assertEqual(db.session.query(Order).count(), 1)
            self.assertEqual(inventory_service.find_discrepancies(), [])

    def test_parallel_checkouts_never_oversell(self):
        results = self._run([(f"cashier-{i}", 1) for i in range(12)])

        placed = [r for r in results if isinstance(r, str)]
        unexpected = [r for r in results if not isinstance(r, (str, InsufficientStock))]
        self.assertFalse(unexpected)
        self.assertEqual(len(placed), 10)
        self.assertEqual(len(placed), len(set(placed)))

        with self.app.app_context():
            self.assertEqual(db.session.get(Product, self.product_id).quantity_on_hand, 0)
            self.assertEqual(inventory_service.reconcile_quantity(self.product_id), 0)


if __name__ == "__main__":
    unittest.main()
