from typing import Dict, Iterable, List, Literal, Optional, Sequence

from api.models import CartItem, Order, Product, User

LOW_STOCK_THRESHOLD = 10
MAX_ORDER_QTY = 10

PAYMENT_MODE_LABELS = {"cod": "Cash on Delivery", "online": "Online Payment"}


def generate_markdown_table(
    headers: Optional[List[str]],
    rows: List[List[str]],
    aligns: Optional[List[Literal["l", "c", "r"]]] = None,
) -> str:
    """
    Generate a Markdown table.

    Args:
        headers: List of column headers, or None to use first row as headers.
        rows: List of rows, each a list of values; cells are stringified and
              pipes are escaped so free text (descriptions, addresses) can't
              break the table.
        aligns: List of alignments ('l', 'c', 'r') for each column.
                Defaults to all center ('c').

    Returns:
        str: Markdown formatted table.
    """
    if not rows:
        return ""

    if not headers:
        headers, rows = rows[0], rows[1:]

    def cell(val) -> str:
        return str(val).replace("|", "\\|").replace("\n", " ")

    headers = [cell(h) for h in headers]
    rows = [[cell(c) for c in row] for row in rows]

    num_cols = len(headers)
    if aligns is None:
        aligns = ["c"] * num_cols
    elif len(aligns) != num_cols:
        raise ValueError("Length of aligns must match number of headers.")

    align_map = {"l": ":---", "c": ":---:", "r": "---:"}

    lines = ["| " + " | ".join(headers) + " |"]
    lines.append("| " + " | ".join(align_map[a] for a in aligns) + " |")
    lines.extend("| " + " | ".join(row) + " |" for row in rows)
    return "\n".join(lines)


def format_price(amount: float) -> str:
    """₹1,234 or ₹1,234.50; whole amounts drop the decimals."""
    if float(amount).is_integer():
        return f"₹{int(amount):,}"
    return f"₹{amount:,.2f}"


def format_date(val) -> str:
    if val is None:
        return "-"
    return val.strftime("%d %B %Y")


def payment_mode_label(mode: str) -> str:
    return PAYMENT_MODE_LABELS.get(mode, mode)


def order_status_label(order: Order) -> str:
    # cancelled wins over whatever status the order had
    if order.is_cancelled:
        return "Cancelled"
    return order.status.capitalize()


def stock_label(product: Product) -> str:
    return f"{product.stock} left" if product.in_stock else "Out of Stock"


# ---------------------------
# Catalog
# ---------------------------


def categories(products: Iterable[Product]) -> List[str]:
    """Distinct categories, first-seen order."""
    seen: Dict[str, None] = {}
    for p in products:
        seen.setdefault(p.category, None)
    return list(seen)


def filter_products(
    products: Sequence[Product], term: str = "", category: str = ""
) -> List[Product]:
    """Case-insensitive match of term in name or description, optionally within one category."""
    term = (term or "").lower()
    return [
        p
        for p in products
        if (term in p.name.lower() or term in p.description.lower())
        and (not category or p.category == category)
    ]


# ---------------------------
# Capabilities
# ---------------------------


def can_add_to_cart(user: Optional[User], product: Product) -> bool:
    return user is not None and not user.is_admin and product.in_stock


def product_actions(user: Optional[User]) -> List[str]:
    """
    Controls a product view offers. Admins manage the catalog and never shop;
    everybody else only sees add-to-cart (enabled per can_add_to_cart).
    """
    if user is not None and user.is_admin:
        return ["edit", "delete"]
    return ["add_to_cart"]


def user_actions(actor: Optional[User], target: User) -> List[str]:
    # an admin never blocks or deletes their own account
    if actor is None or not actor.is_admin or actor.id == target.id:
        return []
    actions = ["unblock" if target.is_blocked else "block"]
    if not target.is_admin:
        actions.append("delete")
    return actions


def cart_item_count(items: Iterable[CartItem]) -> int:
    """Units across all cart lines, shown next to the Cart menu entry."""
    return sum(item.quantity for item in items)


def next_cart_quantity(current: int, change: int) -> Optional[int]:
    """
    New quantity after pressing -/+, None when it would drop to zero or below.
    Not capped by stock, the server decides.
    """
    new_qty = current + change
    return new_qty if new_qty > 0 else None


# ---------------------------
# Admin dashboard
# ---------------------------


def dashboard_stats(
    products: Sequence[Product], orders: Sequence[Order], users: Sequence[User]
) -> Dict[str, float]:
    return {
        "total_revenue": sum(o.total_amount for o in orders),
        "total_orders": len(orders),
        "pending_orders": sum(1 for o in orders if o.status == "pending"),
        "completed_orders": sum(1 for o in orders if o.status == "completed"),
        "total_products": len(products),
        "low_stock_products": sum(
            1 for p in products if p.stock < LOW_STOCK_THRESHOLD
        ),
        "total_users": len(users),
    }
