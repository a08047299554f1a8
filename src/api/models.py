# dataclass models mirrored from the storefront api; wire names are mapped in from_json

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Literal, Optional, Tuple

PaymentMode = Literal["cod", "online"]
OrderStatus = Literal["pending", "completed"]

PAYMENT_MODES: Tuple[str, ...] = ("cod", "online")
ORDER_STATUSES: Tuple[str, ...] = ("pending", "completed")


def parse_ts(val) -> Optional[datetime]:
    """ISO-8601 string -> datetime, None when missing or unparseable."""
    if not val:
        return None
    try:
        return datetime.fromisoformat(str(val))
    except ValueError:
        return None


def _to_float(val) -> float:
    try:
        return float(val)
    except (TypeError, ValueError):
        return 0.0


def _to_int(val) -> int:
    try:
        return int(val)
    except (TypeError, ValueError):
        return 0


@dataclass(frozen=True)
class Review:
    user: str
    rating: float
    comment: str

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> Review:
        return cls(
            user=data.get("user", ""),
            rating=_to_float(data.get("rating")),
            comment=data.get("comment", ""),
        )


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    price: float
    category: str
    description: str
    image: str
    stock: int
    is_active: bool = True
    reviews: Tuple[Review, ...] = ()

    @property
    def in_stock(self) -> bool:
        return self.stock > 0

    @property
    def average_rating(self) -> float:
        if not self.reviews:
            return 0.0
        return sum(r.rating for r in self.reviews) / len(self.reviews)

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> Product:
        return cls(
            id=data.get("_id", ""),
            name=data.get("productname", ""),
            price=_to_float(data.get("price")),
            category=data.get("category", ""),
            description=data.get("description", ""),
            image=data.get("image", ""),
            stock=_to_int(data.get("stock_availabele")),
            is_active=bool(data.get("isactive", True)),
            reviews=tuple(Review.from_json(r) for r in data.get("reviews") or []),
        )


@dataclass(frozen=True)
class ProductInput:
    """Fields an admin submits when creating or editing a product."""

    name: str
    price: float
    category: str
    description: str
    image: str
    stock: int
    is_active: bool = True

    def to_json(self) -> Dict[str, Any]:
        return {
            "productname": self.name,
            "price": self.price,
            "category": self.category,
            "description": self.description,
            "image": self.image,
            "stock_availabele": self.stock,
            "isactive": self.is_active,
        }

    @classmethod
    def from_product(cls, product: Product) -> ProductInput:
        return cls(
            name=product.name,
            price=product.price,
            category=product.category,
            description=product.description,
            image=product.image,
            stock=product.stock,
            is_active=product.is_active,
        )


@dataclass(frozen=True)
class CartItem:
    id: str
    user_id: str
    product: Product
    quantity: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def line_total(self) -> float:
        return self.product.price * self.quantity

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> CartItem:
        return cls(
            id=data.get("_id", ""),
            user_id=data.get("userid", ""),
            product=Product.from_json(data.get("productid") or {}),
            quantity=_to_int(data.get("quantity")),
            created_at=parse_ts(data.get("createAt")),
            updated_at=parse_ts(data.get("updateAt")),
        )


@dataclass(frozen=True)
class OrderUser:
    """The owner of an order when the api populates it instead of sending a bare id."""

    id: str
    username: str
    email: str


@dataclass(frozen=True)
class OrderLine:
    product: Product
    quantity: int

    @property
    def line_total(self) -> float:
        return self.product.price * self.quantity


@dataclass(frozen=True)
class Order:
    id: str
    user_id: str
    lines: Tuple[OrderLine, ...]
    total_amount: float
    payment_mode: str
    status: str
    shipping_address: str
    is_cancelled: bool = False
    user: Optional[OrderUser] = None
    order_date: Optional[datetime] = None
    delivery_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def short_id(self) -> str:
        return self.id[-8:].upper()

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> Order:
        owner = data.get("userid")
        user = None
        if isinstance(owner, dict):
            user = OrderUser(
                id=owner.get("_id", ""),
                username=owner.get("username", ""),
                email=owner.get("email", ""),
            )
            user_id = user.id
        else:
            user_id = owner or ""

        lines = tuple(
            OrderLine(
                product=Product.from_json(line.get("productid") or {}),
                quantity=_to_int(line.get("quantity")),
            )
            for line in data.get("products") or []
        )
        return cls(
            id=data.get("_id", ""),
            user_id=user_id,
            lines=lines,
            total_amount=_to_float(data.get("totalamount")),
            payment_mode=data.get("paymentmode", "cod"),
            status=data.get("status", "pending"),
            shipping_address=data.get("shippingaddress", ""),
            is_cancelled=bool(data.get("iscancelled", False)),
            user=user,
            order_date=parse_ts(data.get("orderdate")),
            delivery_date=parse_ts(data.get("deliverydate")),
            created_at=parse_ts(data.get("createdAt")),
            updated_at=parse_ts(data.get("updatedAt")),
        )


@dataclass(frozen=True)
class User:
    id: str
    username: str
    email: str
    contact: Optional[int] = None
    is_admin: bool = False
    is_blocked: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> User:
        contact = data.get("contact")
        return cls(
            id=data.get("_id", ""),
            username=data.get("username", ""),
            email=data.get("email", ""),
            contact=_to_int(contact) if contact not in (None, "") else None,
            is_admin=bool(data.get("isadmin", False)),
            is_blocked=bool(data.get("isblocked", False)),
            created_at=parse_ts(data.get("createdAt")),
            updated_at=parse_ts(data.get("updatedAt")),
        )
