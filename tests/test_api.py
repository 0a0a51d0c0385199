"""End-to-end tests for the booking admin HTTP API."""

from __future__ import annotations

import tempfile
import unittest
from dataclasses import replace
from pathlib import Path

from fastapi.testclient import TestClient

from fastsewa.api import create_app
from fastsewa.config import Settings
from fastsewa.exports import SPREADSHEET_MIME_TYPE


class BookingAdminApiTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tempdir = tempfile.TemporaryDirectory()
        root = Path(self._tempdir.name)
        settings = replace(
            Settings.defaults(),
            data_dir=root / "data",
            export_dir=root / "exports",
            jwt_secret="api-test-signing-secret-0123456789abcdef",
        )
        self.app = create_app(settings=settings)
        self.client = TestClient(self.app)

    def tearDown(self) -> None:
        self.client.close()
        self._tempdir.cleanup()

    def _login(self, email: str, password: str) -> dict:
        response = self.client.post("/api/auth/login", json={"email": email, "password": password})
        self.assertEqual(response.status_code, 200, response.text)
        return {"Authorization": f"Bearer {response.json()['token']}"}

    def _admin(self) -> dict:
        return self._login("admin@example.com", "admin123")

    def _register(self, username: str = "alice", email: str = "alice@example.com") -> dict:
        response = self.client.post(
            "/api/auth/register",
            json={
                "username": username,
                "email": email,
                "password": "pw123456",
                "confirmPassword": "pw123456",
                "profile": {"name": username.title(), "phone": "9800000000"},
            },
        )
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()["user"]

    def test_health(self) -> None:
        response = self.client.get("/api/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "OK")

    def test_register_login_and_profile(self) -> None:
        user = self._register()
        self.assertNotIn("password", user)
        self.assertEqual(user["role"], "user")

        headers = self._login("alice@example.com", "pw123456")
        profile = self.client.get("/api/auth/profile", headers=headers)
        self.assertEqual(profile.status_code, 200)
        self.assertEqual(profile.json()["user"]["profile"]["name"], "Alice")

    def test_registration_errors(self) -> None:
        self._register()
        duplicate = self.client.post(
            "/api/auth/register",
            json={"username": "alice", "email": "alice@example.com", "password": "pw123456"},
        )
        self.assertEqual(duplicate.status_code, 400)
        self.assertEqual(duplicate.json(), {"success": False, "error": "Email already registered"})

        invalid = self.client.post(
            "/api/auth/register",
            json={"username": "al", "email": "bad", "password": "pw123456", "confirmPassword": "nope"},
        )
        self.assertEqual(invalid.status_code, 400)
        self.assertFalse(invalid.json()["success"])
        self.assertEqual(len(invalid.json()["errors"]), 3)

    def test_login_failures(self) -> None:
        self._register()
        wrong = self.client.post("/api/auth/login", json={"email": "alice@example.com", "password": "nope-nope"})
        self.assertEqual(wrong.status_code, 401)
        unknown = self.client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "pw123456"})
        self.assertEqual(unknown.status_code, 401)
        missing = self.client.post("/api/auth/login", json={})
        self.assertEqual(missing.status_code, 400)

    def test_authentication_required(self) -> None:
        missing = self.client.get("/api/auth/profile")
        self.assertEqual(missing.status_code, 401)
        self.assertEqual(missing.json(), {"success": False, "error": "Access token required"})
        self.assertEqual(missing.headers["www-authenticate"], "Bearer")
        bad = self.client.get("/api/auth/profile", headers={"Authorization": "Bearer garbage"})
        self.assertEqual(bad.status_code, 403)
        self.assertEqual(bad.json(), {"success": False, "error": "Invalid or expired token"})

    def test_admin_routes_reject_regular_users(self) -> None:
        self._register()
        headers = self._login("alice@example.com", "pw123456")
        response = self.client.get("/api/admin/stats", headers=headers)
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json(), {"success": False, "error": "Admin access required"})

    def test_booking_lifecycle_and_stats(self) -> None:
        alice = self._register()
        headers = self._login("alice@example.com", "pw123456")

        created = self.client.post("/api/bookings", headers=headers, json={"serviceId": 2, "notes": "asap"})
        self.assertEqual(created.status_code, 201, created.text)
        booking = created.json()["booking"]
        self.assertEqual(booking["status"], "pending")
        self.assertEqual(booking["serviceName"], "Mobile App")
        self.assertEqual(booking["userId"], alice["id"])
        self.assertEqual(booking["userName"], "Alice")

        mine = self.client.get("/api/bookings", headers=headers).json()["bookings"]
        self.assertEqual([item["id"] for item in mine], [booking["id"]])
        self.assertEqual(mine[0]["user"]["email"], "alice@example.com")

        admin = self._admin()
        stats = self.client.get("/api/admin/stats", headers=admin).json()["stats"]
        self.assertEqual(stats["totalBookings"], 1)
        self.assertEqual(stats["pendingBookings"], 1)

        updated = self.client.put(
            f"/api/bookings/{booking['id']}",
            headers=headers,
            json={"status": "completed", "amount": 500},
        )
        self.assertEqual(updated.status_code, 200, updated.text)
        stats = self.client.get("/api/admin/stats", headers=admin).json()["stats"]
        self.assertEqual(stats["totalRevenue"], 500)

        deleted = self.client.delete(f"/api/bookings/{booking['id']}", headers=headers)
        self.assertEqual(deleted.status_code, 200)
        missing = self.client.get(f"/api/bookings/{booking['id']}", headers=headers)
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.json(), {"success": False, "error": "Booking not found"})

    def test_bookings_are_private_to_their_owner(self) -> None:
        self._register()
        self._register("bobby", "bob@example.com")
        alice = self._login("alice@example.com", "pw123456")
        bob = self._login("bob@example.com", "pw123456")

        booking = self.client.post("/api/bookings", headers=alice, json={"serviceId": 1}).json()["booking"]

        self.assertEqual(self.client.get(f"/api/bookings/{booking['id']}", headers=bob).status_code, 403)
        self.assertEqual(self.client.delete(f"/api/bookings/{booking['id']}", headers=bob).status_code, 403)
        self.assertEqual(
            self.client.get(f"/api/bookings/{booking['id']}", headers=self._admin()).status_code,
            200,
        )

    def test_user_updates(self) -> None:
        alice = self._register()
        self._register("bobby", "bob@example.com")
        headers = self._login("alice@example.com", "pw123456")

        own = self.client.put(f"/api/users/{alice['id']}", headers=headers, json={"password": "newpass1"})
        self.assertEqual(own.status_code, 200, own.text)
        self._login("alice@example.com", "newpass1")

        promote = self.client.put(f"/api/users/{alice['id']}", headers=headers, json={"role": "admin"})
        self.assertEqual(promote.status_code, 403)

        listed = self.client.get("/api/users", headers=headers).json()
        self.assertEqual(listed["count"], 3)
        other = next(user for user in listed["users"] if user["email"] == "bob@example.com")
        foreign = self.client.put(f"/api/users/{other['id']}", headers=headers, json={"username": "mallory"})
        self.assertEqual(foreign.status_code, 403)

    def test_admin_user_management(self) -> None:
        alice = self._register()
        admin = self._admin()

        deactivated = self.client.patch(
            f"/api/admin/users/{alice['id']}/status", headers=admin, json={"isActive": False}
        )
        self.assertEqual(deactivated.status_code, 200, deactivated.text)
        self.assertFalse(deactivated.json()["user"]["isActive"])
        login = self.client.post("/api/auth/login", json={"email": "alice@example.com", "password": "pw123456"})
        self.assertEqual(login.status_code, 401)
        self.assertEqual(self.client.get(f"/api/users/{alice['id']}", headers=admin).status_code, 200)

        role = self.client.patch(f"/api/admin/users/{alice['id']}/role", headers=admin, json={"role": "admin"})
        self.assertEqual(role.json()["user"]["role"], "admin")
        bad_role = self.client.patch(f"/api/admin/users/{alice['id']}/role", headers=admin, json={"role": "owner"})
        self.assertEqual(bad_role.status_code, 400)

        missing = self.client.patch("/api/admin/users/999/status", headers=admin, json={"isActive": True})
        self.assertEqual(missing.status_code, 404)

    def test_admin_booking_status_and_services(self) -> None:
        self._register()
        user = self._login("alice@example.com", "pw123456")
        admin = self._admin()
        booking = self.client.post("/api/bookings", headers=user, json={"serviceId": 3}).json()["booking"]

        confirmed = self.client.patch(
            f"/api/admin/bookings/{booking['id']}/status", headers=admin, json={"status": "confirmed"}
        )
        self.assertEqual(confirmed.json()["booking"]["status"], "confirmed")
        invalid = self.client.patch(
            f"/api/admin/bookings/{booking['id']}/status", headers=admin, json={"status": "lost"}
        )
        self.assertEqual(invalid.status_code, 400)

        listing = self.client.get("/api/admin/bookings", headers=admin).json()
        self.assertEqual(listing["total"], 1)
        self.assertEqual(listing["bookings"][0]["user"]["username"], "alice")

        service = self.client.post(
            "/api/admin/services",
            headers=admin,
            json={"name": "Hosting", "description": "Managed hosting", "price": 50, "duration": 30},
        )
        self.assertEqual(service.json()["service"]["id"], 5)
        self.assertEqual(self.client.get("/api/admin/services", headers=admin).json()["total"], 5)

    def test_exports_download_and_delete(self) -> None:
        self._register()
        self._register("bobby", "bob@example.com")
        admin = self._admin()

        exported = self.client.post("/api/admin/export/users", headers=admin)
        self.assertEqual(exported.status_code, 200, exported.text)
        data = exported.json()["data"]
        self.assertEqual(data["recordCount"], 3)

        filtered = self.client.post(
            "/api/admin/export/users/filtered", headers=admin, json={"role": "user", "status": "active"}
        )
        self.assertEqual(filtered.json()["data"]["recordCount"], 2)
        bookings = self.client.post(
            "/api/admin/export/bookings/filtered", headers=admin, json={"serviceId": 1}
        )
        self.assertEqual(bookings.json()["data"]["recordCount"], 0)

        files = self.client.get("/api/admin/exports", headers=admin).json()["files"]
        self.assertEqual(len(files), 3)

        download = self.client.get(data["downloadUrl"], headers=admin)
        self.assertEqual(download.status_code, 200)
        self.assertTrue(download.headers["content-type"].startswith(SPREADSHEET_MIME_TYPE))
        self.assertIn(data["filename"], download.headers["content-disposition"])

        removed = self.client.delete(f"/api/admin/exports/{data['filename']}", headers=admin)
        self.assertEqual(removed.status_code, 200)
        self.assertEqual(self.client.get(data["downloadUrl"], headers=admin).status_code, 404)

    def test_deleting_missing_export_is_a_server_error(self) -> None:
        response = self.client.delete("/api/admin/exports/users_export_missing.xlsx", headers=self._admin())
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"success": False, "error": "Failed to delete users_export_missing.xlsx"})

    def test_filtered_export_rejects_bad_status(self) -> None:
        response = self.client.post(
            "/api/admin/export/users/filtered", headers=self._admin(), json={"status": "banned"}
        )
        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.json()["success"])


if __name__ == "__main__":
    unittest.main()
