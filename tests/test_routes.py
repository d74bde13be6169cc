import time
import unittest
from datetime import datetime, timedelta, timezone

from corelay.app import create_app
from corelay.extensions import db
from corelay.services.errors import PersistenceError
from corelay.services.store import InMemoryStore

USER = "wojtek@corelay.pl"


def now_ms():
    return int(time.time() * 1000)


class BrokenStore(InMemoryStore):
    def orders_owned_by(self, user_id):
        raise PersistenceError("database unreachable")


class TestCorelayService(unittest.TestCase):
    def setUp(self):
        self.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite://",
        })
        with self.app.app_context():
            db.create_all()
        self.client = self.app.test_client()

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()

    def create_order(self, order_id="ORD-1001", store_id="MODIVO", status=None, user_id=USER):
        payload = {
            "user_id": user_id,
            "order_id": order_id,
            "store_id": store_id,
            "products": [{"name": "Blue Sweater M", "price": 199}],
        }
        if status:
            payload["status"] = status
        return self.client.post("/api/admin/orders", json=payload)

    def scan(self, **body):
        return self.client.post("/api/verify_transaction", json=body)

    def test_health(self):
        resp = self.client.get("/health")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json()["status"], "healthy")

    def test_create_order(self):
        resp = self.create_order()
        self.assertEqual(resp.status_code, 201)
        data = resp.get_json()
        self.assertEqual(data["status"], "READY_FOR_PICKUP")
        self.assertIsNotNone(data["pickup_deadline"])
        self.assertIsNone(data["max_time"])

        resp = self.create_order()
        self.assertEqual(resp.status_code, 409)

    def test_create_picked_up_order_opens_return_window(self):
        data = self.create_order(status="PICKED_UP").get_json()

        max_time = datetime.fromisoformat(data["max_time"])
        self.assertAlmostEqual(
            (max_time - datetime.now(timezone.utc)).total_seconds(),
            timedelta(days=14).total_seconds(),
            delta=60,
        )

    def test_create_order_validation(self):
        self.assertEqual(self.create_order(store_id="IKEA").status_code, 400)
        self.assertEqual(self.create_order(user_id="not-an-email").status_code, 400)
        self.assertEqual(self.create_order(status="RETURNED_PENDING_REFUND").status_code, 400)

        resp = self.client.post("/api/admin/orders", json={
            "user_id": USER, "order_id": "ORD-9", "store_id": "LPP",
            "products": [{"name": "Hat", "price": -1}],
        })
        self.assertEqual(resp.status_code, 400)

        resp = self.client.post("/api/admin/orders", json={"user_id": USER})
        self.assertEqual(resp.status_code, 400)
        self.assertIn("order_id", resp.get_json()["error"])

    def test_list_user_orders(self):
        self.create_order("ORD-1001")
        self.create_order("ORD-1003", "INPOST")

        resp = self.client.post("/api/user/orders", json={"user_id": USER})

        self.assertEqual(resp.status_code, 200)
        self.assertEqual([o["order_id"] for o in resp.get_json()["orders"]], ["ORD-1001", "ORD-1003"])
        self.assertEqual(self.client.post("/api/user/orders", json={}).status_code, 400)

    def test_dynamic_code_pickup(self):
        self.create_order("ORD-1001", "MODIVO")

        resp = self.scan(user_id=USER, timestamp=now_ms() - 5000, scanner_id="MODIVO")

        self.assertEqual(resp.status_code, 200)
        data = resp.get_json()
        self.assertTrue(data["success"])
        self.assertEqual(data["transaction_type"], "PICKUP")
        self.assertEqual(data["type"], "DYNAMIC_CODE")
        self.assertEqual(data["order"]["status"], "PICKED_UP")

    def test_iso_timestamp_is_accepted(self):
        self.create_order("ORD-1001", "MODIVO")
        stamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")

        resp = self.scan(user_id=USER, timestamp=stamp, scanner_id="MODIVO")

        self.assertEqual(resp.status_code, 200)

    def test_stale_dynamic_code(self):
        self.create_order("ORD-1001", "MODIVO")

        resp = self.scan(user_id=USER, timestamp=now_ms() - 31000, scanner_id="MODIVO")

        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.get_json()["error_code"], "CODE_EXPIRED")
        orders = self.client.post("/api/user/orders", json={"user_id": USER}).get_json()["orders"]
        self.assertEqual(orders[0]["status"], "READY_FOR_PICKUP")

    def test_no_matching_order_is_not_found(self):
        self.create_order("ORD-1001", "MODIVO")

        resp = self.scan(user_id=USER, timestamp=now_ms(), scanner_id="LPP")

        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.get_json()["error_code"], "NO_MATCHING_ORDER")

    def test_malformed_scans(self):
        self.assertEqual(self.scan(user_id=USER, timestamp=now_ms(), scanner_id="IKEA").status_code, 400)
        self.assertEqual(self.scan(user_id=USER, timestamp="yesterday", scanner_id="LPP").status_code, 400)
        self.assertEqual(self.scan(user_id="wojtek", timestamp=now_ms(), scanner_id="LPP").status_code, 400)

        resp = self.scan(scanner_id="LPP")
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.get_json()["error_code"], "MISSING_IDENTITY")

    def test_non_object_bodies_are_rejected(self):
        for url in ("/api/verify_transaction", "/api/user/orders",
                    "/api/admin/orders", "/api/user/generate_guest_pin"):
            for body in ([1], "MODIVO", 42):
                resp = self.client.post(url, json=body)
                self.assertEqual(resp.status_code, 400, url)
                self.assertIn("JSON object", resp.get_json()["error"])

    def test_guest_pin_return_flow(self):
        self.create_order("ORD-1002", "LPP", status="PICKED_UP")

        resp = self.client.post("/api/user/generate_guest_pin", json={"user_id": USER, "order_id": "ORD-1002"})
        self.assertEqual(resp.status_code, 201)
        issued = resp.get_json()
        self.assertEqual(len(issued["pin"]), 6)
        self.assertEqual(issued["expires_in_minutes"], 60)

        resp = self.scan(scanner_id="INPOST", guest_pin=issued["pin"])
        self.assertEqual(resp.status_code, 200)
        data = resp.get_json()
        self.assertEqual(data["transaction_type"], "RETURN")
        self.assertEqual(data["type"], "GUEST_CODE")

        resp = self.scan(scanner_id="INPOST", guest_pin=issued["pin"])
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.get_json()["error_code"], "INVALID_GUEST_CODE")

    def test_guest_pin_requires_picked_up_order(self):
        self.create_order("ORD-1001", "MODIVO")
        self.create_order("ORD-2002", "LPP", status="PICKED_UP", user_id="someone@corelay.pl")

        for order_id in ("ORD-1001", "ORD-2002", "ORD-404"):
            resp = self.client.post("/api/user/generate_guest_pin", json={"user_id": USER, "order_id": order_id})
            self.assertEqual(resp.status_code, 400)

    def test_store_failure_is_a_server_error(self):
        app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite://",
            "STORE": BrokenStore(),
        })

        resp = app.test_client().post("/api/verify_transaction", json={
            "user_id": USER, "timestamp": now_ms(), "scanner_id": "MODIVO",
        })

        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.get_json()["error_code"], "PERSISTENCE_ERROR")


class TestCommands(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryStore()
        self.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite://",
            "STORE": self.store,
        })
        self.runner = self.app.test_cli_runner()

    def test_seed_demo_is_idempotent(self):
        result = self.runner.invoke(args=["seed-demo"])
        self.assertIn("Seeded 3 orders", result.output)

        result = self.runner.invoke(args=["seed-demo"])
        self.assertIn("Seeded 0 orders", result.output)

        orders = self.store.orders_owned_by("demo@corelay.pl")
        self.assertEqual(
            [(o.order_id, o.status) for o in orders],
            [("ORD-1002", "PICKED_UP"), ("ORD-1001", "READY_FOR_PICKUP"), ("ORD-1003", "READY_FOR_PICKUP")],
        )

    def test_cleanup_guest_codes(self):
        expired = datetime.now(timezone.utc) - timedelta(minutes=1)
        self.store.upsert_credential("ORD-1002", "123456", expired, "demo@corelay.pl")

        result = self.runner.invoke(args=["cleanup-guest-codes"])

        self.assertIn("Removed 1 expired", result.output)
        self.assertIsNone(self.store.consume_credential("123456"))


if __name__ == '__main__':
    unittest.main()
