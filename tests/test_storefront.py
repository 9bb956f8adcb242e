import asyncio
import os
import sys
import unittest

# Ensure project src/ is on sys.path for imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from core.errors import (  # noqa: E402
    AuthorizationError,
    OperationInProgressError,
    RemoteError,
    SessionExpiredError,
    ValidationError,
)
from core.inflight import order_create_key  # noqa: E402
from core.session import EXPIRED_MESSAGE, session_to_record  # noqa: E402
from core.storefront import (  # noqa: E402
    Storefront,
    validate_listing,
    validate_registration,
)
from fakes import TOKEN_TTL, FakeClock, FakeGateway, MemoryRecords  # noqa: E402


class GatedOrderGateway(FakeGateway):
    """create_order for the gated product waits until released."""

    def __init__(self, clock):
        super().__init__(clock)
        self.gated_product = None
        self.release = asyncio.Event()

    async def create_order(self, authorization, product_id, quantity, idempotency_key):
        if product_id == self.gated_product:
            await self.release.wait()
        return await super().create_order(
            authorization, product_id, quantity, idempotency_key
        )


class StorefrontTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.gateway = GatedOrderGateway(self.clock)
        self.records = MemoryRecords()
        self.notices = []
        self.refreshed = []
        self.storefront = Storefront(
            self.gateway,
            self.records,
            notifier=lambda severity, message: self.notices.append((severity, message)),
            clock=self.clock,
            on_refreshed=self.refreshed.append,
        )
        self.admin = self.gateway.add_user("Root", "ADMIN")
        self.seller = self.gateway.add_user("Sam", "SELLER")
        self.customer = self.gateway.add_user("Cleo", "CUSTOMER")

    async def _login(self, user):
        return await self.storefront.login(user.email, "secret1")

    # ---------- end to end ----------

    async def test_list_then_buy_widget(self):
        await self._login(self.seller)
        product = await self.storefront.create_product("Widget", "9.99", "5")
        self.assertEqual(self.storefront.state.find_product(product.id).stock, 5)
        self.assertIn(("information", "Widget is now listed."), self.notices)

        await self._login(self.customer)
        receipt = await self.storefront.place_order(product.id, 2)

        self.assertFalse(receipt.replay)
        self.assertEqual(receipt.order.status, "CREATED")
        self.assertAlmostEqual(receipt.order.total_amount, 19.98)
        state = self.storefront.state
        self.assertEqual(state.find_product(product.id).stock, 3)
        self.assertEqual([o.id for o in state.orders], [receipt.order.id])
        self.assertIn(("information", "Order placed."), self.notices)

    async def test_retry_with_same_key_is_a_replay(self):
        product = self.gateway.add_product("Widget", 9.99, 5)
        await self._login(self.customer)
        await self.storefront.place_order(product.id, 1, "retry-key")
        receipt = await self.storefront.place_order(product.id, 1, "retry-key")

        self.assertTrue(receipt.replay)
        self.assertEqual(len(self.storefront.state.orders), 1)
        self.assertEqual(self.storefront.state.find_product(product.id).stock, 4)
        self.assertIn(
            ("information", "Duplicate request recognised; no new order was created."),
            self.notices,
        )

    async def test_cancel_restores_stock(self):
        product = self.gateway.add_product("Widget", 9.99, 5)
        await self._login(self.customer)
        receipt = await self.storefront.place_order(product.id, 2)

        cancelled = await self.storefront.cancel_order(receipt.order.id)
        self.assertEqual(cancelled.status, "CANCELLED")
        state = self.storefront.state
        self.assertEqual(state.find_order(receipt.order.id).status, "CANCELLED")
        self.assertEqual(state.find_product(product.id).stock, 5)
        self.assertFalse(self.storefront.can_cancel(state.find_order(receipt.order.id)))

    async def test_cancel_unknown_order(self):
        await self._login(self.customer)
        with self.assertRaises(ValidationError):
            await self.storefront.cancel_order("o-404")
        self.assertEqual(self.gateway.called("cancel_order"), 0)

    async def test_order_saga_for_own_order(self):
        product = self.gateway.add_product("Widget", 9.99, 5)
        await self._login(self.customer)
        receipt = await self.storefront.place_order(product.id, 1)
        steps = await self.storefront.order_saga(receipt.order.id)
        self.assertEqual(steps[0].step_name, "ORDER_CREATED")

    # ---------- guards ----------

    async def test_seller_cannot_buy_and_customer_cannot_list(self):
        product = self.gateway.add_product("Widget", 9.99, 5)
        await self._login(self.seller)
        self.assertFalse(self.storefront.can("purchase"))
        self.gateway.calls.clear()
        with self.assertRaises(AuthorizationError):
            await self.storefront.place_order(product.id, 1)

        await self._login(self.customer)
        self.assertFalse(self.storefront.can("create_product"))
        self.gateway.calls.clear()
        with self.assertRaises(AuthorizationError):
            await self.storefront.create_product("Gadget", 1, 1)
        self.assertEqual(self.gateway.calls, [])

    async def test_access_by_route(self):
        self.assertFalse(self.storefront.can_access("catalog"))
        await self._login(self.customer)
        self.assertTrue(self.storefront.can_access("orders"))
        self.assertFalse(self.storefront.can_access("users"))
        await self._login(self.admin)
        self.assertTrue(self.storefront.can_access("users"))

    async def test_expired_session_is_logged_out_on_next_action(self):
        product = self.gateway.add_product("Widget", 9.99, 5)
        await self._login(self.admin)
        self.assertTrue(self.storefront.state.users)

        self.clock.advance(TOKEN_TTL + 1)
        with self.assertRaises(SessionExpiredError):
            await self.storefront.place_order(product.id, 1)

        state = self.storefront.state
        self.assertIsNone(state.session)
        self.assertEqual(state.users, ())
        self.assertEqual(state.orders, ())
        self.assertIsNone(self.records.payload)
        self.assertEqual(self.gateway.called("create_order"), 0)
        self.assertIn(("information", EXPIRED_MESSAGE), self.notices)

    async def test_expired_action_shows_a_single_toast(self):
        product = self.gateway.add_product("Widget", 9.99, 5)
        await self._login(self.customer)
        self.notices.clear()

        self.clock.advance(TOKEN_TTL)
        result = await self.storefront.attempt(self.storefront.place_order, product.id, 1)

        self.assertIsNone(result)
        self.assertEqual(self.notices, [("information", EXPIRED_MESSAGE)])

    async def test_tick_logs_out_expired_session(self):
        await self._login(self.customer)
        self.assertFalse(await self.storefront.tick())
        self.clock.advance(TOKEN_TTL)
        self.assertTrue(await self.storefront.tick())
        self.assertIsNone(self.storefront.state.session)

    # ---------- in-flight gating ----------

    async def test_duplicate_submit_rejected_while_pending(self):
        widget = self.gateway.add_product("Widget", 9.99, 5)
        gadget = self.gateway.add_product("Gadget", 5.0, 5)
        await self._login(self.customer)
        self.gateway.gated_product = widget.id

        pending = asyncio.create_task(self.storefront.place_order(widget.id, 1))
        while not self.storefront.inflight.busy(order_create_key(widget.id)):
            await asyncio.sleep(0)

        with self.assertRaises(OperationInProgressError):
            await self.storefront.place_order(widget.id, 1)
        # another product is not blocked
        other = await self.storefront.place_order(gadget.id, 1)
        self.assertFalse(other.replay)

        self.gateway.release.set()
        receipt = await pending
        self.assertFalse(receipt.replay)
        self.assertFalse(self.storefront.inflight.any_busy)
        self.assertEqual(len(self.gateway.orders), 2)

    async def test_gate_is_released_after_failure(self):
        product = self.gateway.add_product("Widget", 9.99, 5)
        await self._login(self.customer)
        self.gateway.fail_next("create_order", RemoteError("Service unavailable", status=503))
        with self.assertRaises(RemoteError):
            await self.storefront.place_order(product.id, 1)
        self.assertFalse(self.storefront.inflight.busy(order_create_key(product.id)))

    # ---------- lifecycle ----------

    async def test_start_restores_session_and_catalog(self):
        self.gateway.add_product("Widget", 9.99, 5)
        session = await self._login(self.customer)
        self.storefront = Storefront(
            self.gateway,
            MemoryRecords(session_to_record(session)),
            notifier=lambda severity, message: self.notices.append((severity, message)),
            clock=self.clock,
        )
        restored = await self.storefront.start()
        self.assertEqual(restored, session)
        self.assertEqual(len(self.storefront.state.products), 1)

    async def test_logout_default_message(self):
        await self._login(self.customer)
        await self.storefront.logout()
        self.assertIsNone(self.storefront.state.session)
        self.assertEqual(self.notices[-1], ("information", "Signed out."))

    async def test_register(self):
        user = await self.storefront.register("Nia", "nia@example.com", "secret1", "seller")
        self.assertEqual(user.role, "SELLER")
        self.assertIn(("information", "Registration successful. Please sign in."), self.notices)
        await self.storefront.login("nia@example.com", "secret1")
        self.assertEqual(self.storefront.state.user.id, user.id)

    async def test_attempt_turns_errors_into_toasts(self):
        result = await self.storefront.attempt(self.storefront.refresh_orders)
        self.assertIsNone(result)
        self.assertEqual(self.notices, [("error", "Please sign in first.")])


class ValidationTestCase(unittest.TestCase):
    def test_registration_rules(self):
        cases = [
            ("", "a@example.com", "secret1", "CUSTOMER"),
            ("Ann", "not-an-email", "secret1", "CUSTOMER"),
            ("Ann", "a@example.com", "short", "CUSTOMER"),
            ("Ann", "a@example.com", "secret1", "ADMIN"),
        ]
        for args in cases:
            with self.subTest(args=args):
                with self.assertRaises(ValidationError):
                    validate_registration(*args)
        self.assertEqual(
            validate_registration(" Ann ", " a@example.com ", "secret1", ""),
            ("Ann", "a@example.com", "secret1", "CUSTOMER"),
        )

    def test_listing_rules(self):
        self.assertEqual(validate_listing(" Widget ", "9.999", "5"), ("Widget", 10.0, 5))
        self.assertEqual(validate_listing("Widget", 0, 5.0), ("Widget", 0.0, 5))
        bad = [
            ("", 1, 1),
            ("W", "abc", 1),
            ("W", 1, "x"),
            ("W", -1, 1),
            ("W", 1, -1),
            ("W", "nan", 5),
            ("W", "inf", 5),
            ("W", float("-inf"), 5),
            ("W", "1e400", 5),
            ("W", 10**400, 5),
            ("W", 1, 5.7),
            ("W", 1, float("inf")),
            ("W", 1, float("nan")),
        ]
        for args in bad:
            with self.subTest(args=args):
                with self.assertRaises(ValidationError):
                    validate_listing(*args)


if __name__ == "__main__":
    unittest.main()
