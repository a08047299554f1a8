import asyncio
import unittest
from unittest import mock

from api import store
from api.errors import (
    AdminRequiredError,
    ApiError,
    AuthRequiredError,
    OutOfStockError,
    ValidationError,
)
from api.models import CartItem, Order, Product, ProductInput, User
from utils.cache import ALL_ORDERS_KEY, PRODUCTS_KEY, USERS_KEY, cart_key, orders_key, product_key
from utils.state import GlobalState
from fake_api import (
    cart_json,
    install_fake_session,
    order_json,
    product_json,
    user_json,
)

CUSTOMER = User.from_json(user_json())
ADMIN = User.from_json(user_json("a1", "root@example.com", is_admin=True))


def make_product(stock=5) -> Product:
    return Product.from_json(product_json(stock=stock))


def make_input(**overrides) -> ProductInput:
    fields = dict(
        name="Teapot",
        price=799.0,
        category="Kitchen",
        description="Cast iron",
        image="https://img.test/teapot.png",
        stock=3,
    )
    fields.update(overrides)
    return ProductInput(**fields)


class StoreTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.session = install_fake_session(self)
        self.state = GlobalState()

    def login_as(self, user: User) -> None:
        self.state.user = user

    def spy_invalidate(self) -> mock.Mock:
        spy = mock.Mock(wraps=self.state.cache.invalidate)
        self.state.cache.invalidate = spy
        return spy

    # ---------- Session ----------

    async def test_login_sets_user_and_clears_cache(self):
        self.session.route("GET", "getuserbyemail/alice%40example.com", {"user": user_json()})
        self.session.route("GET", "getproduct", {"products": [product_json()]})
        await store.list_products(self.state)

        user = await store.login(self.state, "  alice@example.com ")
        self.assertEqual(user.id, "u1")
        self.assertIs(self.state.user, user)
        self.assertNotIn(PRODUCTS_KEY, self.state.cache)

    async def test_login_blank_email_issues_no_request(self):
        with self.assertRaises(ValidationError):
            await store.login(self.state, "   ")
        self.assertEqual(self.session.calls, [])

    async def test_login_unknown_email(self):
        self.session.route("GET", "getuserbyemail/bob%40example.com", {"user": None})
        with self.assertRaises(AuthRequiredError):
            await store.login(self.state, "bob@example.com")
        self.assertIsNone(self.state.user)

    async def test_login_blocked_user(self):
        self.session.route(
            "GET",
            "getuserbyemail/alice%40example.com",
            {"user": user_json(is_blocked=True)},
        )
        with self.assertRaises(AuthRequiredError):
            await store.login(self.state, "alice@example.com")
        self.assertIsNone(self.state.user)

    async def test_logout(self):
        self.login_as(CUSTOMER)
        self.session.route("GET", "getsofuser/u1", {"cart": [cart_json()]})
        await store.get_cart(self.state)

        store.logout(self.state)
        self.assertIsNone(self.state.user)
        self.assertNotIn(cart_key("u1"), self.state.cache)

    # ---------- Products ----------

    async def test_list_products_is_cached(self):
        self.session.route("GET", "getproduct", {"products": [product_json()]})
        await store.list_products(self.state)
        await store.list_products(self.state)
        self.assertEqual(len(self.session.calls), 1)

    async def test_create_product_requires_admin(self):
        self.login_as(CUSTOMER)
        with self.assertRaises(AdminRequiredError):
            await store.create_product(self.state, make_input())
        self.assertEqual(self.session.calls, [])

    async def test_create_product_validates_before_request(self):
        self.login_as(ADMIN)
        for bad in (make_input(name=" "), make_input(price=-1), make_input(stock=-2)):
            with self.assertRaises(ValidationError):
                await store.create_product(self.state, bad)
        self.assertEqual(self.session.calls, [])

    async def test_create_product_invalidates_catalog(self):
        self.login_as(ADMIN)
        self.session.route("POST", "createproduct/a1", {"product": product_json("p9")})
        spy = self.spy_invalidate()
        created = await store.create_product(self.state, make_input())
        self.assertEqual(created.id, "p9")
        spy.assert_any_call(PRODUCTS_KEY)
        spy.assert_any_call(product_key("p9"))

    async def test_delete_product_as_customer_is_rejected(self):
        self.login_as(CUSTOMER)
        with self.assertRaises(AdminRequiredError):
            await store.delete_product(self.state, "p1")
        self.assertEqual(self.session.calls, [])

    async def test_delete_product_as_guest_is_rejected(self):
        with self.assertRaises(AuthRequiredError):
            await store.delete_product(self.state, "p1")
        self.assertEqual(self.session.calls, [])

    async def test_update_product_refreshes_detail(self):
        self.login_as(ADMIN)
        self.session.route("GET", "product/p1", {"product": product_json(price=250)})
        self.assertEqual((await store.get_product(self.state, "p1")).price, 250)

        self.session.route("PUT", "update/p1", {"update": product_json(price=300)})
        await store.update_product(self.state, "p1", make_input(price=300))

        self.session.route("GET", "product/p1", {"product": product_json(price=300)})
        self.assertEqual((await store.get_product(self.state, "p1")).price, 300)

    # ---------- Cart ----------

    async def test_guest_cart_issues_no_request(self):
        with self.assertRaises(AuthRequiredError):
            await store.get_cart(self.state)
        self.assertEqual(self.session.calls, [])

    async def test_add_to_cart_invalidates_cart_once(self):
        self.login_as(CUSTOMER)
        self.session.route("POST", "addtocart/u1/p1/2", {"newcart": cart_json(quantity=2)})
        spy = self.spy_invalidate()
        await store.add_to_cart(self.state, make_product(), 2)
        spy.assert_called_once_with(cart_key("u1"))

    async def test_add_out_of_stock_issues_no_request(self):
        self.login_as(CUSTOMER)
        spy = self.spy_invalidate()
        with self.assertRaises(OutOfStockError):
            await store.add_to_cart(self.state, make_product(stock=0))
        self.assertEqual(self.session.calls, [])
        spy.assert_not_called()

    async def test_add_to_cart_rejects_zero_quantity(self):
        self.login_as(CUSTOMER)
        with self.assertRaises(ValidationError):
            await store.add_to_cart(self.state, make_product(), 0)
        self.assertEqual(self.session.calls, [])

    async def test_failed_mutation_does_not_invalidate(self):
        self.login_as(CUSTOMER)
        self.session.route(
            "POST", "addtocart/u1/p1/1", {"error": "Insufficient stock"}, status=400
        )
        spy = self.spy_invalidate()
        with self.assertRaises(ApiError):
            await store.add_to_cart(self.state, make_product())
        spy.assert_not_called()

    async def test_increment_past_stock_is_not_blocked(self):
        self.login_as(CUSTOMER)
        item = CartItem.from_json(cart_json(quantity=5, product=product_json(stock=5)))
        self.session.route("PATCH", "updatecart/c1/6", {"update": cart_json(quantity=6)})
        spy = self.spy_invalidate()

        updated = await store.change_cart_quantity(self.state, item, 1)
        self.assertEqual(updated.quantity, 6)
        self.assertEqual(self.session.calls, [("PATCH", "updatecart/c1/6", None)])
        spy.assert_called_once_with(cart_key("u1"))

    async def test_decrement_to_zero_issues_no_request(self):
        self.login_as(CUSTOMER)
        item = CartItem.from_json(cart_json(quantity=1))
        self.assertIsNone(await store.change_cart_quantity(self.state, item, -1))
        self.assertEqual(self.session.calls, [])

    async def test_remove_cart_item(self):
        self.login_as(CUSTOMER)
        self.session.route("DELETE", "deletecart/c1", {"message": "deleted"})
        spy = self.spy_invalidate()
        await store.remove_cart_item(self.state, CartItem.from_json(cart_json()))
        spy.assert_called_once_with(cart_key("u1"))

    async def test_cart_badge_and_cart_share_one_request(self):
        self.login_as(CUSTOMER)
        self.session.route(
            "GET", "getsofuser/u1", {"cart": [cart_json(quantity=2), cart_json("c2", quantity=3)]}
        )
        count, cart = await asyncio.gather(
            store.cart_count(self.state), store.get_cart(self.state)
        )
        self.assertEqual(count, 5)
        self.assertEqual(len(cart), 2)
        self.assertEqual(self.session.calls, [("GET", "getsofuser/u1", None)])

    async def test_cart_badge_follows_mutations(self):
        self.login_as(CUSTOMER)
        self.session.route("GET", "getsofuser/u1", {"cart": [cart_json(quantity=1)]})
        self.assertEqual(await store.cart_count(self.state), 1)

        self.session.route("PATCH", "updatecart/c1/2", {"update": cart_json(quantity=2)})
        await store.change_cart_quantity(self.state, CartItem.from_json(cart_json()), 1)

        self.session.route("GET", "getsofuser/u1", {"cart": [cart_json(quantity=2)]})
        self.assertEqual(await store.cart_count(self.state), 2)

    async def test_guest_cart_badge_issues_no_request(self):
        with self.assertRaises(AuthRequiredError):
            await store.cart_count(self.state)
        self.assertEqual(self.session.calls, [])

    async def test_quick_add_sends_single_unit(self):
        self.login_as(CUSTOMER)
        self.session.route("POST", "addtocart/u1/p1/1", {"newcart": cart_json()})
        await store.add_to_cart(self.state, make_product())
        self.assertEqual(self.session.calls, [("POST", "addtocart/u1/p1/1", None)])

    async def test_guest_quick_add_issues_no_request(self):
        with self.assertRaises(AuthRequiredError):
            await store.add_to_cart(self.state, make_product())
        self.assertEqual(self.session.calls, [])

    async def test_cart_reloads_after_mutation(self):
        self.login_as(CUSTOMER)
        self.session.route("GET", "getsofuser/u1", {"cart": []})
        self.assertEqual(await store.get_cart(self.state), [])

        self.session.route("POST", "addtocart/u1/p1/1", {"newcart": cart_json()})
        await store.add_to_cart(self.state, make_product())

        self.session.route("GET", "getsofuser/u1", {"cart": [cart_json()]})
        cart = await store.get_cart(self.state)
        self.assertEqual(len(cart), 1)
        self.assertEqual(store.cart_total(cart), 250)

    # ---------- Orders ----------

    async def test_blank_address_issues_no_request(self):
        self.login_as(CUSTOMER)
        for address in ("", "   ", None):
            with self.assertRaises(ValidationError):
                await store.place_order(self.state, address)
        self.assertEqual(self.session.calls, [])

    async def test_unknown_payment_mode(self):
        self.login_as(CUSTOMER)
        with self.assertRaises(ValidationError):
            await store.place_order(self.state, "12 MG Road", "barter")
        self.assertEqual(self.session.calls, [])

    async def test_guest_cannot_order(self):
        with self.assertRaises(AuthRequiredError):
            await store.place_order(self.state, "12 MG Road")
        self.assertEqual(self.session.calls, [])

    async def test_place_order_invalidates_cart_and_orders(self):
        self.login_as(CUSTOMER)
        self.session.route("POST", "createorder", {"order": order_json()})
        spy = self.spy_invalidate()

        order = await store.place_order(self.state, " 12 MG Road ", "online")
        self.assertEqual(order.id, "o1234567890abcd")
        self.assertEqual(self.session.calls[0][2]["shippingaddress"], "12 MG Road")
        self.assertEqual(
            sorted(c.args[0] for c in spy.call_args_list),
            sorted([cart_key("u1"), orders_key("u1"), ALL_ORDERS_KEY]),
        )

    async def test_my_orders_newest_first(self):
        self.login_as(CUSTOMER)
        self.session.route(
            "GET",
            "getsofuserorder/u1",
            {
                "orders": [
                    order_json("old", order_date="2024-01-01T00:00:00"),
                    order_json("undated", order_date=None),
                    order_json("new", order_date="2024-06-01T00:00:00"),
                ]
            },
        )
        orders = await store.my_orders(self.state)
        self.assertEqual([o.id for o in orders], ["new", "old", "undated"])

    async def test_all_orders_requires_admin(self):
        self.login_as(CUSTOMER)
        with self.assertRaises(AdminRequiredError):
            await store.all_orders(self.state)
        self.assertEqual(self.session.calls, [])

    async def test_update_order_invalidates_owner_and_global(self):
        self.login_as(ADMIN)
        order = Order.from_json(order_json("o1"))
        self.session.route("PUT", "updateorder/o1", {"order": order_json("o1", iscancelled=True)})
        spy = self.spy_invalidate()

        updated = await store.update_order(self.state, order, is_cancelled=True)
        self.assertTrue(updated.is_cancelled)
        self.assertEqual(self.session.calls[0][2], {"iscancelled": True})
        self.assertEqual(
            sorted(c.args[0] for c in spy.call_args_list),
            sorted([orders_key("u1"), ALL_ORDERS_KEY]),
        )

    async def wait_until(self, condition) -> None:
        for _ in range(200):
            if condition():
                return
            await asyncio.sleep(0.01)
        self.fail("condition not reached")

    async def test_cancelled_caller_still_invalidates(self):
        # the worker running a mutation gets cancelled after the request went out
        self.login_as(ADMIN)
        self.session.route("GET", "getallorder", {"orders": [order_json("o1")]})
        await store.all_orders(self.state)
        self.assertIn(ALL_ORDERS_KEY, self.state.cache)

        self.session.route("PUT", "updateorder/o1", {"order": order_json("o1", status="completed")})
        self.session.hold = True
        task = asyncio.create_task(
            store.update_order(self.state, Order.from_json(order_json("o1")), status="completed")
        )
        await asyncio.to_thread(self.session.entered.wait, 5)
        task.cancel()
        self.session.release.set()

        with self.assertRaises(asyncio.CancelledError):
            await task
        await self.wait_until(lambda: ALL_ORDERS_KEY not in self.state.cache)
        self.assertIn(("PUT", "updateorder/o1", {"status": "completed"}), self.session.calls)
        self.assertNotIn(orders_key("u1"), self.state.cache)

    async def test_update_order_rejects_unknown_status(self):
        self.login_as(ADMIN)
        with self.assertRaises(ValidationError):
            await store.update_order(self.state, Order.from_json(order_json()), status="lost")
        self.assertEqual(self.session.calls, [])

    # ---------- Users ----------

    async def test_block_user(self):
        self.login_as(ADMIN)
        self.session.route("PUT", "updateuser/u1", {"user": user_json(is_blocked=True)})
        spy = self.spy_invalidate()
        updated = await store.set_user_blocked(self.state, CUSTOMER, True)
        self.assertTrue(updated.is_blocked)
        spy.assert_called_once_with(USERS_KEY)

    async def test_delete_user_requires_admin(self):
        self.login_as(CUSTOMER)
        with self.assertRaises(AdminRequiredError):
            await store.delete_user(self.state, ADMIN)
        self.assertEqual(self.session.calls, [])


if __name__ == "__main__":
    unittest.main()
