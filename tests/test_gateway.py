import json
import os
import sys
import unittest
from unittest.mock import MagicMock

import requests

# Ensure project src/ is on sys.path for imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from core.errors import GatewayTimeoutError, RemoteError  # noqa: E402
from gateway.api import Gateway, to_order, to_user  # noqa: E402
from gateway.client import (  # noqa: E402
    GENERIC_ERROR,
    GatewayClient,
    extract_error_code,
    extract_error_message,
)


def _response(status=200, payload=None, text=None):
    resp = MagicMock()
    resp.status_code = status
    if payload is not None:
        resp.content = json.dumps(payload).encode()
        resp.json.return_value = payload
    elif text is not None:
        resp.content = text.encode()
        resp.text = text
        resp.json.side_effect = ValueError("not json")
    else:
        resp.content = b""
    return resp


ORDER = {
    "id": 11,
    "userId": 3,
    "productId": 5,
    "quantity": 2,
    "unitPrice": 9.99,
    "totalAmount": 19.98,
    "status": "CREATED",
    "createdAt": "2025-06-15T12:00:00Z",
}


class ErrorPayloadTestCase(unittest.TestCase):
    def test_message_variants(self):
        self.assertEqual(extract_error_message("Bad Request"), "Bad Request")
        self.assertEqual(extract_error_message({"error": "nope"}), "nope")
        self.assertEqual(
            extract_error_message({"error": {"code": "X", "message": "nested"}}), "nested"
        )
        self.assertEqual(extract_error_message({"message": "top"}), "top")
        self.assertEqual(extract_error_message({"error": {}}, "fallback"), "fallback")
        self.assertEqual(extract_error_message(None), GENERIC_ERROR)
        self.assertEqual(extract_error_message("   ", "fallback"), "fallback")

    def test_code(self):
        self.assertEqual(
            extract_error_code({"error": {"code": "IDEMPOTENCY_CONFLICT"}}),
            "IDEMPOTENCY_CONFLICT",
        )
        self.assertEqual(extract_error_code({"code": "FORBIDDEN"}), "FORBIDDEN")
        self.assertIsNone(extract_error_code("text"))


class GatewayClientTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.http = MagicMock()
        self.client = GatewayClient("http://gw.test/api/", timeout=2.5, http=self.http)
        self.gateway = Gateway(self.client)

    def _sent(self):
        args, kwargs = self.http.request.call_args
        return args, kwargs

    async def test_headers_and_url(self):
        self.http.request.return_value = _response(200, [])
        await self.client.request("GET", "/orders", authorization="Bearer abc")

        (method, url), kwargs = self._sent()
        self.assertEqual((method, url), ("GET", "http://gw.test/api/orders"))
        self.assertEqual(kwargs["timeout"], 2.5)
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer abc")
        self.assertTrue(kwargs["headers"]["X-Correlation-Id"])

    async def test_error_status_raises_remote_error(self):
        self.http.request.return_value = _response(
            409,
            {"error": {"code": "IDEMPOTENCY_CONFLICT", "message": "key reused"}},
        )
        with self.assertRaises(RemoteError) as ctx:
            await self.client.request("POST", "/orders")
        self.assertEqual(ctx.exception.message, "key reused")
        self.assertEqual(ctx.exception.status, 409)
        self.assertEqual(ctx.exception.code, "IDEMPOTENCY_CONFLICT")

    async def test_plain_text_error_and_empty_body(self):
        self.http.request.return_value = _response(502, text="Bad Gateway")
        with self.assertRaises(RemoteError) as ctx:
            await self.client.request("GET", "/products")
        self.assertEqual(ctx.exception.message, "Bad Gateway")

        self.http.request.return_value = _response(500)
        with self.assertRaises(RemoteError) as ctx:
            await self.client.request("GET", "/products", fallback="Could not load.")
        self.assertEqual(ctx.exception.message, "Could not load.")

    async def test_timeout(self):
        self.http.request.side_effect = requests.exceptions.Timeout("slow")
        with self.assertRaises(GatewayTimeoutError) as ctx:
            await self.client.request("GET", "/products", fallback="Could not load.")
        self.assertTrue(ctx.exception.message.startswith("Could not load."))
        self.assertIsNone(ctx.exception.status)

    async def test_connection_error(self):
        self.http.request.side_effect = requests.exceptions.ConnectionError("refused")
        with self.assertRaises(RemoteError) as ctx:
            await self.client.request("GET", "/products")
        self.assertNotIsInstance(ctx.exception, GatewayTimeoutError)
        self.assertEqual(ctx.exception.message, GENERIC_ERROR)

    async def test_create_order_sends_idempotency_key(self):
        self.http.request.return_value = _response(
            200, {"idempotentReplay": True, "order": ORDER, "correlationId": "c-1"}
        )
        receipt = await self.gateway.create_order("Bearer abc", "5", 2, "order-1-aa")

        (method, url), kwargs = self._sent()
        self.assertEqual((method, url), ("POST", "http://gw.test/api/orders"))
        self.assertEqual(kwargs["headers"]["Idempotency-Key"], "order-1-aa")
        self.assertEqual(kwargs["json"], {"productId": "5", "quantity": 2})
        self.assertTrue(receipt.replay)
        self.assertEqual(receipt.order.id, "11")
        self.assertEqual(receipt.correlation_id, "c-1")

    async def test_cancel_uses_patch(self):
        self.http.request.return_value = _response(200, dict(ORDER, status="CANCELLED"))
        order = await self.gateway.cancel_order("Bearer abc", "11")
        (method, url), _ = self._sent()
        self.assertEqual((method, url), ("PATCH", "http://gw.test/api/orders/11/cancel"))
        self.assertEqual(order.status, "CANCELLED")

    async def test_paginated_users(self):
        self.http.request.return_value = _response(
            200,
            {
                "items": [{"id": 1, "name": "Root", "email": "r@x", "role": "admin"}],
                "pagination": {"page": 1},
            },
        )
        users = await self.gateway.list_users("Bearer abc")
        self.assertEqual([u.role for u in users], ["ADMIN"])

    async def test_malformed_row_is_remote_error(self):
        self.http.request.return_value = _response(200, [{"name": "no id"}])
        with self.assertRaises(RemoteError):
            await self.gateway.list_products()

    async def test_login_posts_credentials(self):
        self.http.request.return_value = _response(200, {"access_token": "t"})
        payload = await self.gateway.login("a@example.com", "secret1")
        _, kwargs = self._sent()
        self.assertEqual(kwargs["json"], {"email": "a@example.com", "password": "secret1"})
        self.assertNotIn("Authorization", kwargs["headers"])
        self.assertEqual(payload, {"access_token": "t"})


class ConverterTestCase(unittest.TestCase):
    def test_order_conversion(self):
        order = to_order(ORDER)
        self.assertEqual(order.user_id, "3")
        self.assertEqual(order.product_id, "5")
        self.assertAlmostEqual(order.total_amount, 19.98)
        self.assertIsNone(order.failure_reason)

    def test_unknown_role(self):
        with self.assertRaises(ValueError):
            to_user({"id": 1, "role": "ROOT"})


if __name__ == "__main__":
    unittest.main()
