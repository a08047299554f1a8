import asyncio
import unittest

from utils.cache import (
    ALL_ORDERS_KEY,
    PRODUCTS_KEY,
    QueryCache,
    cart_key,
    orders_key,
    product_key,
)


class QueryCacheTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.cache = QueryCache()
        self.calls = 0

    async def fetcher(self):
        self.calls += 1
        return ["value", self.calls]

    async def test_fetch_memoizes(self):
        first = await self.cache.fetch(PRODUCTS_KEY, self.fetcher)
        second = await self.cache.fetch(PRODUCTS_KEY, self.fetcher)
        self.assertEqual(first, second)
        self.assertEqual(self.calls, 1)
        self.assertIn(PRODUCTS_KEY, self.cache)
        self.assertEqual(self.cache.peek(PRODUCTS_KEY), ["value", 1])

    async def test_none_result_is_cached(self):
        async def missing():
            self.calls += 1
            return None

        self.assertIsNone(await self.cache.fetch(product_key("x"), missing))
        self.assertIsNone(await self.cache.fetch(product_key("x"), missing))
        self.assertEqual(self.calls, 1)
        self.assertEqual(self.cache.invalidate(product_key("x")), 1)

    async def test_invalidate_refetches(self):
        await self.cache.fetch(cart_key("u1"), self.fetcher)
        self.assertEqual(self.cache.invalidate(cart_key("u1")), 1)
        self.assertNotIn(cart_key("u1"), self.cache)
        value = await self.cache.fetch(cart_key("u1"), self.fetcher)
        self.assertEqual(value, ["value", 2])

    async def test_invalidate_prefix(self):
        await self.cache.fetch(cart_key("u1"), self.fetcher)
        await self.cache.fetch(cart_key("u2"), self.fetcher)
        await self.cache.fetch(orders_key("u1"), self.fetcher)

        self.assertEqual(self.cache.invalidate(("cart",)), 2)
        self.assertNotIn(cart_key("u1"), self.cache)
        self.assertNotIn(cart_key("u2"), self.cache)
        self.assertIn(orders_key("u1"), self.cache)

    async def test_invalidate_does_not_touch_similar_keys(self):
        await self.cache.fetch(ALL_ORDERS_KEY, self.fetcher)
        await self.cache.fetch(orders_key("u1"), self.fetcher)
        self.cache.invalidate(orders_key("u1"))
        self.assertIn(ALL_ORDERS_KEY, self.cache)

    async def test_invalidate_unknown_key(self):
        self.assertEqual(self.cache.invalidate(("nothing",)), 0)

    async def test_concurrent_fetches_share_one_request(self):
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow():
            self.calls += 1
            started.set()
            await release.wait()
            return "slow"

        first = asyncio.create_task(self.cache.fetch(PRODUCTS_KEY, slow))
        await started.wait()
        second = asyncio.create_task(self.cache.fetch(PRODUCTS_KEY, slow))
        await asyncio.sleep(0)
        release.set()

        self.assertEqual(await asyncio.gather(first, second), ["slow", "slow"])
        self.assertEqual(self.calls, 1)

    async def test_stale_result_is_not_stored(self):
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow():
            started.set()
            await release.wait()
            return "old"

        task = asyncio.create_task(self.cache.fetch(cart_key("u1"), slow))
        await started.wait()
        # a mutation lands while the read is in flight
        self.cache.invalidate(cart_key("u1"))
        release.set()

        self.assertEqual(await task, "old")
        self.assertNotIn(cart_key("u1"), self.cache)

    async def test_failed_fetch_is_not_cached(self):
        async def boom():
            self.calls += 1
            raise RuntimeError("down")

        with self.assertRaises(RuntimeError):
            await self.cache.fetch(PRODUCTS_KEY, boom)
        self.assertNotIn(PRODUCTS_KEY, self.cache)
        self.assertEqual(await self.cache.fetch(PRODUCTS_KEY, self.fetcher), ["value", 2])

    async def test_clear(self):
        await self.cache.fetch(PRODUCTS_KEY, self.fetcher)
        await self.cache.fetch(cart_key("u1"), self.fetcher)
        self.cache.clear()
        self.assertNotIn(PRODUCTS_KEY, self.cache)
        self.assertNotIn(cart_key("u1"), self.cache)
        self.assert_no_bookkeeping()

    def assert_no_bookkeeping(self):
        self.assertEqual(self.cache._locks, {})
        self.assertEqual(self.cache._generations, {})
        self.assertEqual(self.cache._pending, {})

    async def test_settled_fetches_leave_no_locks(self):
        async def boom():
            raise RuntimeError("down")

        for pid in ("p1", "p2", "p3"):
            await self.cache.fetch(product_key(pid), self.fetcher)
        with self.assertRaises(RuntimeError):
            await self.cache.fetch(product_key("p4"), boom)
        self.assert_no_bookkeeping()

    async def test_concurrent_and_stale_fetches_leave_no_locks(self):
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow():
            started.set()
            await release.wait()
            return "old"

        first = asyncio.create_task(self.cache.fetch(cart_key("u1"), slow))
        await started.wait()
        second = asyncio.create_task(self.cache.fetch(cart_key("u1"), slow))
        await asyncio.sleep(0)
        self.cache.invalidate(("cart",))
        release.set()

        await asyncio.gather(first, second)
        self.assert_no_bookkeeping()

    async def test_clear_discards_in_flight_result(self):
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow():
            started.set()
            await release.wait()
            return "previous user"

        task = asyncio.create_task(self.cache.fetch(cart_key("u1"), slow))
        await started.wait()
        # logout while the cart is loading
        self.cache.clear()
        release.set()

        self.assertEqual(await task, "previous user")
        self.assertNotIn(cart_key("u1"), self.cache)
        self.assert_no_bookkeeping()


if __name__ == "__main__":
    unittest.main()
