import json
import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient

from pasokari import app as app_module
from pasokari.app import create_app
from pasokari.config import Settings
from pasokari.db import BootstrapError, InMemoryDocumentStore, StoreError
from pasokari.dependencies import Services
from pasokari.mailer import InMemoryTransport, Notifier, SendError


class UnavailableStore(InMemoryDocumentStore):
    def save_inquiry(self, name, phone, email, message):
        raise StoreError("connection refused")

    def list_categories(self):
        raise StoreError("connection refused")


class UnreachableStore(UnavailableStore):
    def connect(self):
        raise BootstrapError("MongoDB unreachable")


def _make_client(store=None, transport=None):
    store = store or InMemoryDocumentStore()
    transport = transport or InMemoryTransport()
    services = Services(
        store=store,
        notifier=Notifier(transport, sender="web@pasokari.test", recipient="owner@pasokari.test"),
    )
    settings = Settings(use_in_memory_backends=True, max_body_bytes=1024)
    return TestClient(create_app(settings=settings, services=services)), store, transport


VALID_CONTACT = {"name": "Budi", "phone": "08123", "email": "a@b.com", "message": "Hi"}


class ContactApiTests(unittest.TestCase):
    def setUp(self):
        self.client, self.store, self.transport = _make_client()

    def test_root_reports_ready(self):
        response = self.client.get("/")
        self.assertEqual(response.status_code, 200)
        self.assertIn("Pasokari Siap", response.text)

    def test_submit_contact_saves_and_notifies(self):
        response = self.client.post(
            "/api/contact",
            json={"name": "Budi", "phone": "08123", "email": "a@b.com", "message": "Hi"},
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(
            response.json(), {"success": True, "message": "Pesan berhasil disimpan!"}
        )

        saved = self.store.list_inquiries()
        self.assertEqual(len(saved), 1)
        self.assertEqual(
            (saved[0].name, saved[0].phone, saved[0].email, saved[0].message),
            ("Budi", "08123", "a@b.com", "Hi"),
        )
        self.assertIsNotNone(saved[0].created_at)

        self.assertEqual(len(self.transport.sent), 1)
        sent = self.transport.sent[0]
        self.assertEqual(sent.to, "owner@pasokari.test")
        self.assertEqual(sent.subject, "📩 Pesan Baru: Budi")
        self.assertIn("08123", sent.html_body)

    def test_missing_fields_rejected_without_saving(self):
        for missing in ("name", "email", "message"):
            body = {"name": "Budi", "phone": "08123", "email": "a@b.com", "message": "Hi"}
            body[missing] = ""
            response = self.client.post("/api/contact", json=body)
            self.assertEqual(response.status_code, 400, missing)
            self.assertEqual(
                response.json(), {"success": False, "message": "Data tidak lengkap!"}
            )
        self.assertEqual(self.store.list_inquiries(), [])
        self.assertEqual(self.transport.sent, [])

    def test_missing_phone_rejected_by_store(self):
        response = self.client.post(
            "/api/contact", json={"name": "Budi", "email": "a@b.com", "message": "Hi"}
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.store.list_inquiries(), [])

    def test_transport_failure_does_not_change_response(self):
        client, store, transport = _make_client(
            transport=InMemoryTransport(error=SendError("port blocked"))
        )
        response = client.post(
            "/api/contact",
            json={"name": "Budi", "phone": "08123", "email": "a@b.com", "message": "Hi"},
        )
        self.assertEqual(response.status_code, 201)
        self.assertTrue(response.json()["success"])
        self.assertEqual(len(store.list_inquiries()), 1)
        self.assertEqual(transport.sent, [])

    def test_store_unavailable_returns_server_error(self):
        client, store, transport = _make_client(store=UnavailableStore())
        response = client.post(
            "/api/contact",
            json={"name": "Budi", "phone": "08123", "email": "a@b.com", "message": "Hi"},
        )
        self.assertEqual(response.status_code, 500)
        self.assertEqual(
            response.json(), {"success": False, "message": "Terjadi kesalahan server."}
        )
        self.assertEqual(store.inquiries, [])
        self.assertEqual(transport.sent, [])

    def test_oversized_body_rejected(self):
        response = self.client.post(
            "/api/contact",
            json={"name": "Budi", "phone": "08123", "email": "a@b.com", "message": "x" * 2048},
        )
        self.assertEqual(response.status_code, 413)
        self.assertFalse(response.json()["success"])
        self.assertEqual(self.store.list_inquiries(), [])

    def test_cors_allows_any_origin(self):
        response = self.client.get("/api/products", headers={"Origin": "https://pasokari.com"})
        self.assertEqual(response.headers.get("access-control-allow-origin"), "*")

    def test_empty_body_is_incomplete(self):
        response = self.client.post("/api/contact")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(
            response.json(), {"success": False, "message": "Data tidak lengkap!"}
        )
        self.assertEqual(self.store.list_inquiries(), [])

    def test_non_string_field_is_incomplete(self):
        response = self.client.post("/api/contact", json={**VALID_CONTACT, "phone": 8123})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(
            response.json(), {"success": False, "message": "Data tidak lengkap!"}
        )
        self.assertEqual(self.store.list_inquiries(), [])

    def test_invalid_json_is_incomplete(self):
        response = self.client.post(
            "/api/contact",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.json()["success"])

    def test_chunked_body_over_limit_rejected(self):
        chunks = iter([b'{"name": "' + b"x" * 800, b"x" * 800 + b'"}'])
        response = self.client.post(
            "/api/contact", content=chunks, headers={"Content-Type": "application/json"}
        )
        self.assertEqual(response.status_code, 413)
        self.assertEqual(
            response.json(), {"success": False, "message": "Payload terlalu besar."}
        )
        self.assertEqual(self.store.list_inquiries(), [])

    def test_chunked_body_under_limit_accepted(self):
        body = json.dumps(VALID_CONTACT).encode()
        chunks = iter([body[:10], body[10:]])
        response = self.client.post(
            "/api/contact", content=chunks, headers={"Content-Type": "application/json"}
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(len(self.store.list_inquiries()), 1)


class ProductApiTests(unittest.TestCase):
    def setUp(self):
        self.client, self.store, _ = _make_client()

    def test_seed_then_list_round_trips(self):
        payload = {"fruits": {"id": ["apel"], "en": ["apple"]}}
        response = self.client.post("/api/products/seed", json=payload)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.json(), {"success": True, "message": "Database berhasil diisi!"}
        )

        listed = self.client.get("/api/products")
        self.assertEqual(listed.status_code, 200)
        self.assertEqual(listed.json(), payload)

    def test_seed_replaces_previous_categories(self):
        first = {
            "fruits": {"id": ["apel"], "en": ["apple"]},
            "spices": {"id": ["lada"], "en": ["pepper"]},
        }
        second = {"coffee": {"id": ["kopi"], "en": ["coffee"]}}
        self.client.post("/api/products/seed", json=first)
        self.client.post("/api/products/seed", json=second)
        self.assertEqual(self.client.get("/api/products").json(), second)

        self.client.post("/api/products/seed", json=second)
        self.assertEqual(self.client.get("/api/products").json(), second)

    def test_malformed_seed_fails_and_keeps_catalog(self):
        existing = {"fruits": {"id": ["apel"], "en": ["apple"]}}
        self.client.post("/api/products/seed", json=existing)

        response = self.client.post("/api/products/seed", json={"tea": {"id": ["teh"]}})
        self.assertEqual(response.status_code, 500)
        self.assertEqual(
            response.json(), {"success": False, "message": "Gagal seeding."}
        )
        self.assertEqual(self.client.get("/api/products").json(), existing)

    def test_list_products_store_failure(self):
        client, _, _ = _make_client(store=UnavailableStore())
        response = client.get("/api/products")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(
            response.json(), {"success": False, "message": "Gagal mengambil data."}
        )

    def test_invalid_seed_json_fails_with_envelope(self):
        response = self.client.post(
            "/api/products/seed",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        self.assertEqual(response.status_code, 500)
        self.assertEqual(
            response.json(), {"success": False, "message": "Gagal seeding."}
        )

    def test_empty_seed_body_fails_with_envelope(self):
        response = self.client.post("/api/products/seed")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(
            response.json(), {"success": False, "message": "Gagal seeding."}
        )


class StartupTests(unittest.TestCase):
    def test_unreachable_store_is_logged_and_app_keeps_serving(self):
        services = Services(
            store=UnreachableStore(),
            notifier=Notifier(InMemoryTransport(), sender=None, recipient="owner@pasokari.test"),
        )
        app = create_app(settings=Settings(use_in_memory_backends=True), services=services)

        with self.assertLogs("pasokari.app", level="ERROR") as logs:
            with TestClient(app) as client:
                self.assertEqual(client.get("/").status_code, 200)

                response = client.post("/api/contact", json=VALID_CONTACT)
                self.assertEqual(response.status_code, 500)
                self.assertEqual(
                    response.json(),
                    {"success": False, "message": "Terjadi kesalahan server."},
                )

                response = client.get("/api/products")
                self.assertEqual(response.status_code, 500)
                self.assertEqual(
                    response.json(),
                    {"success": False, "message": "Gagal mengambil data."},
                )
        self.assertIn("Store connection failed", logs.output[0])

    def test_reachable_store_connects_at_startup(self):
        client, _, _ = _make_client()
        with self.assertLogs("pasokari.app", level="INFO") as logs:
            with client:
                self.assertEqual(client.get("/").status_code, 200)
        self.assertIn("Connected to InMemoryDocumentStore", logs.output[0])

    @patch("pasokari.app.uvicorn.run")
    def test_main_serves_module_level_app(self, mock_run):
        app_module.main()
        (served,), kwargs = mock_run.call_args
        self.assertIs(served, app_module.app)
        self.assertEqual(kwargs["port"], app_module.get_settings().port)


if __name__ == "__main__":
    unittest.main()
