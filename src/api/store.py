# src/api/store.py
# reads go through the session cache, mutations invalidate the keys they touch
from __future__ import annotations

import asyncio
from typing import Awaitable, List, Optional, TypeVar

from api import resources
from api.errors import AuthRequiredError, OutOfStockError, ValidationError
from api.models import (
    ORDER_STATUSES,
    PAYMENT_MODES,
    CartItem,
    Order,
    OrderStatus,
    PaymentMode,
    Product,
    ProductInput,
    User,
)
from utils.cache import (
    ALL_ORDERS_KEY,
    PRODUCTS_KEY,
    USERS_KEY,
    CacheKey,
    cart_key,
    orders_key,
    product_key,
)
from utils.logger import get_logger
from utils.pure import cart_item_count, next_cart_quantity
from utils.state import GlobalState

_logger = get_logger(__name__)

T = TypeVar("T")


async def _commit(state: GlobalState, request: Awaitable[T], *keys: CacheKey) -> T:
    """
    Await a mutation request, then invalidate keys. Shielded, so a caller
    cancelled after the request went out still leaves the cache consistent
    with the server.
    """

    async def run() -> T:
        result = await request
        for key in keys:
            state.cache.invalidate(key)
        return result

    return await asyncio.shield(run())


# ---------------------------
# Session
# ---------------------------


async def login(state: GlobalState, email: str) -> User:
    """
    Look the account up by email and make it the session user.
    The api offers no credential check, only the lookup.
    """
    email = (email or "").strip()
    if not email:
        raise ValidationError("Email is required.")
    user = await resources.get_user_by_email(email)
    if user is None or not user.id:
        raise AuthRequiredError("No account found for that email.")
    if user.is_blocked:
        raise AuthRequiredError("This account has been blocked.")
    state.cache.clear()
    state.user = user
    _logger.info(f"Logged in as {user.email} (admin={user.is_admin})")
    return user


def logout(state: GlobalState) -> None:
    if state.user is not None:
        _logger.info(f"Logged out {state.user.email}")
    state.user = None
    state.cache.clear()


# ---------------------------
# Products
# ---------------------------


async def list_products(state: GlobalState) -> List[Product]:
    return await state.cache.fetch(PRODUCTS_KEY, resources.list_products)


async def get_product(state: GlobalState, product_id: str) -> Optional[Product]:
    return await state.cache.fetch(
        product_key(product_id), lambda: resources.get_product(product_id)
    )


def validate_product_input(product: ProductInput) -> None:
    missing = [
        label
        for label, val in (
            ("name", product.name),
            ("category", product.category),
            ("image URL", product.image),
            ("description", product.description),
        )
        if not (val or "").strip()
    ]
    if missing:
        raise ValidationError(f"Missing {', '.join(missing)}.")
    if product.price < 0:
        raise ValidationError("Price cannot be negative.")
    if product.stock < 0:
        raise ValidationError("Stock cannot be negative.")


async def create_product(state: GlobalState, product: ProductInput) -> Product:
    admin = state.require_admin()
    validate_product_input(product)
    created = await _commit(
        state, resources.create_product(product, admin.id), PRODUCTS_KEY
    )
    state.cache.invalidate(product_key(created.id))
    _logger.info(f"Created product {created.id} ({created.name})")
    return created


async def update_product(
    state: GlobalState, product_id: str, product: ProductInput
) -> Product:
    state.require_admin()
    validate_product_input(product)
    updated = await _commit(
        state,
        resources.update_product(product_id, product),
        PRODUCTS_KEY,
        product_key(product_id),
    )
    _logger.info(f"Updated product {product_id}")
    return updated


async def delete_product(state: GlobalState, product_id: str) -> None:
    state.require_admin()
    await _commit(
        state,
        resources.delete_product(product_id),
        PRODUCTS_KEY,
        product_key(product_id),
    )
    _logger.info(f"Deleted product {product_id}")


# ---------------------------
# Cart
# ---------------------------


async def get_cart(state: GlobalState) -> List[CartItem]:
    user = state.require_user()
    return await state.cache.fetch(
        cart_key(user.id), lambda: resources.get_user_cart(user.id)
    )


async def cart_count(state: GlobalState) -> int:
    """Units in the cart, read from the same cache entry as get_cart."""
    return cart_item_count(await get_cart(state))


async def add_to_cart(
    state: GlobalState, product: Product, quantity: int = 1
) -> CartItem:
    user = state.require_user()
    if not product.in_stock:
        raise OutOfStockError("This product is currently out of stock.")
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1.")
    return await _commit(
        state,
        resources.add_to_cart(user.id, product.id, quantity),
        cart_key(user.id),
    )


async def change_cart_quantity(
    state: GlobalState, item: CartItem, change: int
) -> Optional[CartItem]:
    """
    Apply a -/+ step to a cart line. Returns None without a request when the
    result would not be positive (use remove_cart_item for that).
    """
    user = state.require_user()
    new_qty = next_cart_quantity(item.quantity, change)
    if new_qty is None:
        return None
    return await _commit(
        state, resources.update_cart_quantity(item.id, new_qty), cart_key(user.id)
    )


async def remove_cart_item(state: GlobalState, item: CartItem) -> None:
    user = state.require_user()
    await _commit(state, resources.remove_from_cart(item.id), cart_key(user.id))


def cart_total(items: List[CartItem]) -> float:
    return sum(item.line_total for item in items)


# ---------------------------
# Orders
# ---------------------------


async def place_order(
    state: GlobalState, shipping_address: str, payment_mode: PaymentMode = "cod"
) -> Order:
    """Order everything in the cart. The server empties the cart afterwards."""
    user = state.require_user()
    address = (shipping_address or "").strip()
    if not address:
        raise ValidationError("Please enter your shipping address.")
    if payment_mode not in PAYMENT_MODES:
        raise ValidationError(f"Unknown payment mode: {payment_mode}")

    order = await _commit(
        state,
        resources.create_order(
            user.id,
            payment_mode=payment_mode,
            shipping_address=address,
            status="pending",
        ),
        cart_key(user.id),
        orders_key(user.id),
        ALL_ORDERS_KEY,
    )
    _logger.info(f"Order {order.id} placed by {user.email}")
    return order


async def my_orders(state: GlobalState) -> List[Order]:
    user = state.require_user()
    orders = await state.cache.fetch(
        orders_key(user.id), lambda: resources.list_user_orders(user.id)
    )
    return newest_first(orders)


async def all_orders(state: GlobalState) -> List[Order]:
    state.require_admin()
    orders = await state.cache.fetch(ALL_ORDERS_KEY, resources.list_all_orders)
    return newest_first(orders)


def newest_first(orders: List[Order]) -> List[Order]:
    return sorted(
        orders,
        key=lambda o: o.order_date.timestamp() if o.order_date else float("-inf"),
        reverse=True,
    )


async def update_order(
    state: GlobalState,
    order: Order,
    status: Optional[OrderStatus] = None,
    is_cancelled: Optional[bool] = None,
) -> Order:
    state.require_admin()
    if status is not None and status not in ORDER_STATUSES:
        raise ValidationError(f"Unknown order status: {status}")
    keys = [ALL_ORDERS_KEY]
    if order.user_id:
        keys.insert(0, orders_key(order.user_id))
    updated = await _commit(
        state,
        resources.update_order(order.id, status=status, is_cancelled=is_cancelled),
        *keys,
    )
    _logger.info(f"Updated order {order.id} status={status} cancelled={is_cancelled}")
    return updated


# ---------------------------
# Users
# ---------------------------


async def list_users(state: GlobalState) -> List[User]:
    state.require_admin()
    return await state.cache.fetch(USERS_KEY, resources.list_users)


async def set_user_blocked(state: GlobalState, user: User, blocked: bool) -> User:
    state.require_admin()
    updated = await _commit(
        state, resources.update_user(user.id, is_blocked=blocked), USERS_KEY
    )
    _logger.info(f"User {user.email} blocked={blocked}")
    return updated


async def delete_user(state: GlobalState, user: User) -> None:
    state.require_admin()
    await _commit(state, resources.delete_user(user.id), USERS_KEY)
    _logger.info(f"Deleted user {user.email}")
