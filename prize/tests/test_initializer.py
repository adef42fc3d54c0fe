import json
from unittest import mock

import requests
from django.test import SimpleTestCase

from gacha_backend.sheets_client import SheetsClient
from prize.backends import LocalPrizeBackend, RemotePrizeBackend
from prize.config import PrizeConfig
from prize.initializer import LOAD_ERROR_TITLE, DataInitializer, check_data_integrity
from prize.services import PrizeService
from prize.store import ErrorStore, PrizeInventoryStore
from prize.tests.fakes import InMemoryRedis, make_prize, sheets_response

API_URL = "https://sheets.example.test/exec"


def record(**overrides):
    payload = {"id": "a", "name": "A", "imageUrl": "", "stock": 1, "createdAt": 1}
    payload.update(overrides)
    return payload


class IntegrityCheckTests(SimpleTestCase):
    def test_accepts_valid_records(self):
        self.assertTrue(check_data_integrity([make_prize("a", 0), make_prize("b", 3)]))

    def test_rejects_invalid_records(self):
        self.assertFalse(check_data_integrity([make_prize("a", -1)]))
        self.assertFalse(check_data_integrity([make_prize("", 1)]))
        self.assertFalse(check_data_integrity([make_prize("a", 1, name="")]))
        self.assertFalse(check_data_integrity([make_prize("a", 1, image_url=None)]))
        self.assertFalse(check_data_integrity([make_prize("a", 1, created_at="yesterday")]))
        self.assertFalse(check_data_integrity([make_prize("a", "3")]))


class LocalInitializerTests(SimpleTestCase):
    def setUp(self):
        self.redis = InMemoryRedis()
        self.local = LocalPrizeBackend(client=self.redis, key="test:prizes")
        self.store = PrizeInventoryStore()
        self.errors = ErrorStore()
        self.initializer = DataInitializer(
            PrizeService(self.local, store=self.store),
            self.local,
            PrizeConfig(remote_enabled=False, remote_api_url=""),
            store=self.store,
            errors=self.errors,
        )

    def test_loads_valid_data(self):
        self.redis.data["test:prizes"] = json.dumps([record(), record(id="b")])

        self.assertIsNone(self.initializer.initialize())

        self.assertEqual([p.id for p in self.store.all()], ["a", "b"])
        self.assertFalse(self.errors.has_error)

    def test_negative_stock_clears_store_and_storage(self):
        self.redis.data["test:prizes"] = json.dumps([record(), record(id="b", stock=-1)])

        self.initializer.initialize()

        self.assertEqual(self.store.all(), ())
        self.assertNotIn("test:prizes", self.redis.data)

    def test_missing_fields_clear_data(self):
        self.redis.data["test:prizes"] = json.dumps([{"id": "a", "stock": 1}])

        self.initializer.initialize()

        self.assertEqual(self.store.all(), ())

    def test_missing_image_url_clears_data(self):
        self.redis.data["test:prizes"] = json.dumps(
            [{"id": "a", "name": "A", "stock": 1, "createdAt": 1}]
        )

        self.initializer.initialize()

        self.assertEqual(self.store.all(), ())
        self.assertNotIn("test:prizes", self.redis.data)

    def test_corrupted_data_starts_empty_without_error(self):
        self.redis.data["test:prizes"] = "[{broken"

        self.assertIsNone(self.initializer.initialize())

        self.assertEqual(self.store.all(), ())

    def test_local_failure_reports_uniform_message(self):
        self.redis.fail = True

        app_error = self.initializer.initialize()

        self.assertEqual(app_error.title, LOAD_ERROR_TITLE)
        self.assertEqual(app_error.message, "Could not load data from local storage.")
        self.assertIn("Data source: local storage", app_error.details)
        self.assertIs(self.errors.current_error, app_error)
        self.assertEqual(self.store.all(), ())


@mock.patch("gacha_backend.sheets_client.requests.get")
class RemoteInitializerTests(SimpleTestCase):
    def setUp(self):
        self.redis = InMemoryRedis({"test:prizes": json.dumps([record()])})
        self.local = LocalPrizeBackend(client=self.redis, key="test:prizes")
        self.store = PrizeInventoryStore([make_prize("stale", 1)])
        self.errors = ErrorStore()
        remote = RemotePrizeBackend(SheetsClient(API_URL, timeout=5))
        self.initializer = DataInitializer(
            PrizeService(remote, store=self.store),
            self.local,
            PrizeConfig(remote_enabled=True, remote_api_url=API_URL),
            store=self.store,
            errors=self.errors,
        )

    def test_loads_remote_collection(self, get):
        get.return_value = sheets_response({"prizes": [record(id="r1", totalStock=4)]})

        self.assertIsNone(self.initializer.initialize())

        self.assertEqual([p.id for p in self.store.all()], ["r1"])
        self.assertEqual(self.store.all()[0].total_stock, 4)

    def test_invalid_remote_data_also_clears_local_storage(self, get):
        get.return_value = sheets_response({"prizes": [record(stock=-1)]})

        self.initializer.initialize()

        self.assertEqual(self.store.all(), ())
        self.assertNotIn("test:prizes", self.redis.data)

    def test_network_failure_gives_connectivity_guidance(self, get):
        get.side_effect = requests.ConnectionError("blocked")

        app_error = self.initializer.initialize()

        self.assertEqual(self.store.all(), ())
        self.assertIn("network or CORS", app_error.message)
        self.assertIn("Network/CORS problem", app_error.details)
        self.assertIn(API_URL, app_error.details)

    def test_unauthorized_gives_sign_in_guidance(self, get):
        get.return_value = sheets_response({}, status=401, reason="Unauthorized")

        app_error = self.initializer.initialize()

        self.assertIn("Sign in", app_error.message)
        self.assertIn("HTTP status: 401 Unauthorized", app_error.details)

    def test_script_error_includes_details(self, get):
        get.return_value = sheets_response({"error": "TypeError in doGet"})

        app_error = self.initializer.initialize()

        self.assertIn("Apps Script raised an exception", app_error.message)
        self.assertIn("Apps Script details: TypeError in doGet", app_error.details)
