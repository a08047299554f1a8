from typing import Optional

from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, MarkdownViewer

from api import store
from api.errors import StorefrontError
from api.models import Product
from utils.pure import (
    MAX_ORDER_QTY,
    can_add_to_cart,
    format_price,
    generate_markdown_table,
    product_actions,
    stock_label,
)
from views.base_screen import report_error
from views.modal_dialog import ConfirmDeleteModal
from views.modal_product_form import ProductFormModal


def render_product_markdown(product: Product) -> str:
    rows = [
        ["Category", product.category],
        ["Price", format_price(product.price)],
        ["Stock Available", stock_label(product)],
        ["Image", product.image or "-"],
    ]
    if product.reviews:
        rows.append(
            [
                "Rating",
                f"{product.average_rating:.1f} ({len(product.reviews)} reviews)",
            ]
        )
    md = f"### {product.name}\n\n"
    md += generate_markdown_table(["Attribute", "Value"], rows, ["l", "l"])
    md += f"\n\n#### Description\n\n{product.description}\n"
    if product.reviews:
        md += "\n#### Customer Reviews\n\n"
        md += generate_markdown_table(
            ["Reviewer", "Rating", "Comment"],
            [
                [r.user, "★" * int(round(r.rating)) or "-", r.comment]
                for r in product.reviews
            ],
            ["l", "c", "l"],
        )
    return md


class ProdDetailModal(ModalScreen[bool]):
    """
    Product detail. Customers pick a quantity and add to cart, admins get
    edit/delete instead; the controls of the other role are never composed.
    Returns True if the cart or the catalog changed.
    """

    def __init__(self, product_id: str) -> None:
        super().__init__()
        self._product_id = product_id
        self._prod: Optional[Product] = None
        self._order_qty = 1

    def compose(self) -> ComposeResult:
        actions = product_actions(self.app.state.user)
        with Horizontal(id="hort-prod-detail"):
            yield MarkdownViewer("Loading...", show_table_of_contents=False)
            with Vertical(id="div-prod-actions"):
                if "add_to_cart" in actions:
                    yield Label("Quantity")
                    with Horizontal(id="hort-qty"):
                        yield Button("-", id="btn-sub-qty")
                        yield Input(value="1", id="input-order-qty", disabled=True)
                        yield Button("+", id="btn-add-qty")
                    yield Button(
                        "Add to Cart", id="btn-addcart", variant="primary", disabled=True
                    )
                if "edit" in actions:
                    yield Button("Edit", id="btn-edit", variant="default")
                if "delete" in actions:
                    yield Button("Delete", id="btn-delete", variant="error")
                yield Button("Go Back", id="btn-quit")

    async def on_mount(self):
        self.load_product()

    @work(exclusive=True, group="load")
    async def load_product(self) -> None:
        try:
            self._prod = await store.get_product(self.app.state, self._product_id)
        except StorefrontError as e:
            report_error(self, e, "Failed to load product")
            self._prod = None

        viewer = self.query_one(MarkdownViewer)
        if self._prod is None:
            await viewer.document.update(
                "### Product Not Found\n\nThe product you're looking for doesn't exist."
            )
            for btn in self.query("#btn-edit, #btn-delete"):
                btn.disabled = True
            return

        await viewer.document.update(render_product_markdown(self._prod))
        self._refresh_cart_controls()

    def _refresh_cart_controls(self) -> None:
        buttons = self.query("#btn-addcart")
        if not buttons or self._prod is None:
            return
        btn_addcart = buttons.first(Button)
        user = self.app.state.user
        allowed = can_add_to_cart(user, self._prod)
        btn_addcart.disabled = not allowed
        if user is None:
            btn_addcart.label = "Login to Buy"
        elif not self._prod.in_stock:
            btn_addcart.label = "Out of Stock"
            btn_addcart.variant = "warning"
        else:
            btn_addcart.label = "Add to Cart"

        max_qty = max(min(MAX_ORDER_QTY, self._prod.stock), 1)
        self._order_qty = max(1, min(self._order_qty, max_qty))
        self.query_one("#input-order-qty", Input).value = str(self._order_qty)
        self.query_one("#btn-sub-qty", Button).disabled = (
            not allowed or self._order_qty <= 1
        )
        self.query_one("#btn-add-qty", Button).disabled = (
            not allowed or self._order_qty >= max_qty
        )

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(False)

    @on(Button.Pressed, "#btn-add-qty")
    def handle_add_qty(self):
        self._order_qty += 1
        self._refresh_cart_controls()

    @on(Button.Pressed, "#btn-sub-qty")
    def handle_sub_qty(self):
        self._order_qty -= 1
        self._refresh_cart_controls()

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self):
        self.dismiss(False)

    @on(Button.Pressed, "#btn-addcart")
    @work(exclusive=True)
    async def handle_addcart(self):
        btn_addcart = self.query_one("#btn-addcart", Button)
        btn_addcart.disabled = True
        btn_addcart.label = "Adding..."
        try:
            await store.add_to_cart(self.app.state, self._prod, self._order_qty)
        except StorefrontError as e:
            report_error(self, e, "Failed to add to cart")
            self._refresh_cart_controls()
            return

        self.app.notify(f"{self._prod.name} has been added to your cart.", title="Added to Cart")
        self.dismiss(True)

    @on(Button.Pressed, "#btn-edit")
    @work(exclusive=True)
    async def handle_edit(self):
        if self._prod is None:
            return
        if await self.app.push_screen_wait(ProductFormModal(self._prod)):
            self.dismiss(True)

    @on(Button.Pressed, "#btn-delete")
    @work(exclusive=True)
    async def handle_delete(self):
        if self._prod is None:
            return
        if not await self.app.push_screen_wait(ConfirmDeleteModal("product")):
            return

        btn_delete = self.query_one("#btn-delete", Button)
        btn_delete.disabled = True
        try:
            await store.delete_product(self.app.state, self._prod.id)
        except StorefrontError as e:
            report_error(self, e, "Failed to delete product")
            btn_delete.disabled = False
            return

        self.app.notify("Product has been successfully deleted.", title="Product Deleted")
        self.dismiss(True)
