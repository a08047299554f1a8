# src/api/resources.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from api import client, models


def _items(data: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    return data.get(key) or []


def _item(data: Dict[str, Any], key: str) -> Optional[Dict[str, Any]]:
    val = data.get(key)
    return val if isinstance(val, dict) else None


# ---------------------------
# Products
# ---------------------------


async def list_products() -> List[models.Product]:
    data = await client.read("getproduct")
    return [models.Product.from_json(p) for p in _items(data, "products")]


async def get_product(product_id: str) -> Optional[models.Product]:
    """Fetch a product by id; None when the api has no such product."""
    data = await client.read("product", product_id)
    raw = _item(data, "product")
    return models.Product.from_json(raw) if raw else None


async def create_product(
    product: models.ProductInput, user_id: str
) -> models.Product:
    """Create a product on behalf of the (admin) user_id."""
    data = await client.write(
        "POST", "createproduct", user_id, payload=product.to_json()
    )
    return models.Product.from_json(_item(data, "product") or {})


async def update_product(
    product_id: str, product: models.ProductInput
) -> models.Product:
    data = await client.write("PUT", "update", product_id, payload=product.to_json())
    return models.Product.from_json(_item(data, "update") or {})


async def delete_product(product_id: str) -> None:
    await client.delete("delete", product_id)


# ---------------------------
# Cart
# ---------------------------


async def get_user_cart(user_id: str) -> List[models.CartItem]:
    data = await client.read("getsofuser", user_id)
    return [models.CartItem.from_json(c) for c in _items(data, "cart")]


async def add_to_cart(
    user_id: str, product_id: str, quantity: int = 1
) -> models.CartItem:
    """
    Add product_id to the user's cart. The server merges with an existing line
    for the same product and enforces stock.
    """
    data = await client.write("POST", "addtocart", user_id, product_id, quantity)
    return models.CartItem.from_json(_item(data, "newcart") or {})


async def update_cart_quantity(cart_id: str, quantity: int) -> models.CartItem:
    data = await client.write("PATCH", "updatecart", cart_id, quantity)
    return models.CartItem.from_json(_item(data, "update") or {})


async def remove_from_cart(cart_id: str) -> None:
    await client.delete("deletecart", cart_id)


# ---------------------------
# Orders
# ---------------------------


async def create_order(
    user_id: str,
    payment_mode: str,
    shipping_address: str,
    status: str = "pending",
    product_id: Optional[str] = None,
    quantity: Optional[int] = None,
) -> models.Order:
    """
    Place an order. Without product_id the server builds the lines from the
    user's cart and empties it; with product_id it orders that single product.
    """
    body: Dict[str, Any] = {
        "userid": user_id,
        "paymentmode": payment_mode,
        "shippingaddress": shipping_address,
        "status": status,
    }
    if product_id is not None:
        body["productid"] = product_id
        body["quantity"] = quantity if quantity is not None else 1
    data = await client.write("POST", "createorder", payload=body)
    return models.Order.from_json(_item(data, "order") or {})


async def list_user_orders(user_id: str) -> List[models.Order]:
    data = await client.read("getsofuserorder", user_id)
    return [models.Order.from_json(o) for o in _items(data, "orders")]


async def list_all_orders() -> List[models.Order]:
    data = await client.read("getallorder")
    return [models.Order.from_json(o) for o in _items(data, "orders")]


async def update_order(
    order_id: str,
    status: Optional[str] = None,
    is_cancelled: Optional[bool] = None,
    delivery_date: Optional[datetime] = None,
) -> models.Order:
    """Partial update: only the arguments that are not None are sent."""
    body: Dict[str, Any] = {}
    if status is not None:
        body["status"] = status
    if is_cancelled is not None:
        body["iscancelled"] = is_cancelled
    if delivery_date is not None:
        body["deliverydate"] = delivery_date.isoformat()
    data = await client.write("PUT", "updateorder", order_id, payload=body)
    return models.Order.from_json(_item(data, "order") or {})


# ---------------------------
# Users
# ---------------------------


async def list_users() -> List[models.User]:
    data = await client.read("getusers")
    return [models.User.from_json(u) for u in _items(data, "users")]


async def get_user_by_email(email: str) -> Optional[models.User]:
    data = await client.read("getuserbyemail", email)
    raw = _item(data, "user")
    return models.User.from_json(raw) if raw else None


async def update_user(
    user_id: str,
    username: Optional[str] = None,
    email: Optional[str] = None,
    contact: Optional[int] = None,
    is_admin: Optional[bool] = None,
    is_blocked: Optional[bool] = None,
) -> models.User:
    body: Dict[str, Any] = {}
    if username is not None:
        body["username"] = username
    if email is not None:
        body["email"] = email
    if contact is not None:
        body["contact"] = contact
    if is_admin is not None:
        body["isadmin"] = is_admin
    if is_blocked is not None:
        body["isblocked"] = is_blocked
    data = await client.write("PUT", "updateuser", user_id, payload=body)
    return models.User.from_json(_item(data, "user") or {})


async def delete_user(user_id: str) -> None:
    await client.delete("deleteuser", user_id)
