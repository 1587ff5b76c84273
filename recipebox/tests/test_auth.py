import unittest
from unittest.mock import MagicMock, patch

import requests

from recipebox.auth import AuthServiceError, InMemoryAuthClient, SupabaseAuthClient
from recipebox.tests.base import ApiTestCase


def fake_response(status_code=200, payload=None):
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.json.return_value = payload if payload is not None else {}
    return response


class SupabaseAuthClientTests(unittest.TestCase):
    def setUp(self):
        self.client = SupabaseAuthClient("https://auth.example/", "service-key")
        self.get = MagicMock()
        self.client._session.get = self.get

    def test_requires_configuration(self):
        with self.assertRaises(ValueError):
            SupabaseAuthClient("", "key")

    def test_get_user(self):
        self.get.return_value = fake_response(
            payload={"id": "u1", "email": "a@example.com"}
        )
        user = self.client.get_user("user-token")
        self.assertEqual(user.id, "u1")
        self.assertEqual(user.email, "a@example.com")
        args, kwargs = self.get.call_args
        self.assertEqual(args[0], "https://auth.example/auth/v1/user")
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer user-token")
        self.assertEqual(kwargs["headers"]["apikey"], "service-key")

    def test_rejected_token(self):
        self.get.return_value = fake_response(status_code=401)
        self.assertIsNone(self.client.get_user("bad"))

    def test_provider_errors(self):
        self.get.return_value = fake_response(status_code=503)
        with self.assertRaises(AuthServiceError):
            self.client.get_user("token")

        self.get.side_effect = requests.Timeout("slow")
        with self.assertRaises(AuthServiceError):
            self.client.get_user_by_id("u1")

    def test_find_user_by_email_pages(self):
        with patch("recipebox.auth.ADMIN_USERS_PAGE_SIZE", 2):
            self.get.side_effect = [
                fake_response(
                    payload={
                        "users": [
                            {"id": "u1", "email": "a@example.com"},
                            {"id": "u2", "email": "b@example.com"},
                        ]
                    }
                ),
                fake_response(payload={"users": [{"id": "u3", "email": "C@Example.com"}]}),
            ]
            user = self.client.find_user_by_email(" c@example.com ")
        self.assertEqual(user.id, "u3")
        self.assertEqual(self.get.call_args.kwargs["params"]["page"], 2)

    def test_find_user_by_email_missing(self):
        self.get.return_value = fake_response(payload={"users": []})
        self.assertIsNone(self.client.find_user_by_email("nobody@example.com"))

    def test_get_user_by_id(self):
        self.get.return_value = fake_response(status_code=404)
        self.assertIsNone(self.client.get_user_by_id("missing"))
        self.get.return_value = fake_response(payload={"id": "u1", "email": None})
        self.assertEqual(self.client.get_user_by_id("u1").id, "u1")
        self.assertTrue(self.get.call_args.args[0].endswith("/auth/v1/admin/users/u1"))


class InMemoryAuthClientTests(unittest.TestCase):
    def test_lookup(self):
        auth = InMemoryAuthClient()
        user = auth.add_user("Dana@Example.com", token="t1")
        self.assertEqual(auth.get_user("t1"), user)
        self.assertIsNone(auth.get_user("t2"))
        self.assertEqual(auth.find_user_by_email("dana@example.com "), user)
        self.assertEqual(auth.get_user_by_id(user.id), user)


class CurrentUserTests(ApiTestCase):
    def test_malformed_header(self):
        response = self.client.get(
            "/api/recipes", headers={"Authorization": "Token abc"}
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["detail"], "Missing auth token.")

    def test_provider_failure_is_500(self):
        with patch.object(self.auth, "get_user", side_effect=AuthServiceError("down")):
            response = self.client.get("/api/recipes", headers=self.headers(self.alice))
        self.assertEqual(response.status_code, 500)


if __name__ == "__main__":
    unittest.main()
