from typing import List

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Container, Horizontal, HorizontalGroup, Vertical, VerticalScroll
from textual.events import ScreenResume
from textual.widgets import Button, Label, Rule

from api import store
from api.errors import StorefrontError
from api.models import CartItem
from utils.messages import CartChangedMessage, ModeSwitchedMessage
from utils.pure import format_price
from views.base_screen import BaseScreen, LoginPrompt, report_error
from views.modal_checkout import CheckoutModal


class CartItemWidget(HorizontalGroup):
    """
    One cart line with -/+ and remove. Mutates through the store and posts
    CartChangedMessage so the screen reloads from the (invalidated) cache.
    """

    def __init__(self, item: CartItem):
        super().__init__()
        self.item = item

    def compose(self):
        with Container(classes="div-cart-item"):
            yield Label(self.item.product.name, classes="label-item-name")
            yield Label(format_price(self.item.product.price), classes="label-item-price")
            yield Label(
                f"Line total: {format_price(self.item.line_total)}",
                classes="label-item-total",
            )
        with Horizontal(classes="div-actions"):
            yield Button("-", classes="btn-qty-dec")
            yield Label(str(self.item.quantity), classes="label-item-qty")
            # no stock cap on +, the server enforces stock
            yield Button("+", classes="btn-qty-inc")
            yield Button("Remove", classes="btn-item-remove", variant="error")

    def _set_busy(self, busy: bool) -> None:
        for btn in self.query(Button):
            btn.disabled = busy

    @on(Button.Pressed, ".btn-qty-dec")
    def handle_decrement(self):
        self.change_quantity(-1)

    @on(Button.Pressed, ".btn-qty-inc")
    def handle_increment(self):
        self.change_quantity(1)

    @work(exclusive=True)
    async def change_quantity(self, change: int):
        self._set_busy(True)
        try:
            updated = await store.change_cart_quantity(self.app.state, self.item, change)
        except StorefrontError as e:
            report_error(self, e, "Failed to update quantity")
            self._set_busy(False)
            return
        self._set_busy(False)
        if updated is not None:
            self.post_message(CartChangedMessage())

    @on(Button.Pressed, ".btn-item-remove")
    @work(exclusive=True)
    async def handle_remove_item(self):
        self._set_busy(True)
        try:
            await store.remove_cart_item(self.app.state, self.item)
        except StorefrontError as e:
            report_error(self, e, "Failed to remove item")
            self._set_busy(False)
            return

        self.notify("Item has been removed from your cart.", title="Item Removed")
        self.post_message(CartChangedMessage())


class CartScreen(BaseScreen):
    """
    The logged-in customer's cart. Guests get a login prompt and the cart is
    never requested for them.
    """

    def __init__(self) -> None:
        super().__init__()
        self._items: List[CartItem] = []
        self._rendered = False

    def compose(self) -> ComposeResult:
        yield from super().compose()
        yield LoginPrompt("Please login to view your cart.", id="div-login-prompt")
        with Vertical(id="div-cart"):
            yield VerticalScroll(id="vertscroll-content")
            yield Label("Your cart is empty", id="label-cart-empty")
            yield Label("Subtotal: ₹0", id="label-cart-total")
            yield Rule(line_style="dashed")
            with Horizontal(id="hort-buttons"):
                yield Button("Refresh", id="btn-refresh")
                yield Button("Checkout", id="btn-checkout", variant="primary")

    @on(CartChangedMessage)
    @on(ModeSwitchedMessage)
    @on(ScreenResume)
    @on(Button.Pressed, "#btn-refresh")
    @work(exclusive=True)  # exclusive, else concurrent reloads mount duplicates
    async def handle_cart_change(self):
        logged_in = self.app.state.is_logged_in
        self.query_one("#div-login-prompt").display = not logged_in
        self.query_one("#div-cart").display = logged_in
        if not logged_in:
            return

        try:
            cart_items = await store.get_cart(self.app.state)
        except StorefrontError as e:
            report_error(self, e, "Unable to load your cart. Please try again later.")
            return

        if self._rendered and cart_items == self._items:
            return
        self._rendered = True
        self._items = list(cart_items)

        content = self.query_one("#vertscroll-content")
        await content.remove_children()
        await content.mount_all([CartItemWidget(item) for item in self._items])

        self.query_one("#label-cart-empty").display = not self._items
        self.query_one("#btn-checkout", Button).disabled = not self._items
        self.query_one("#label-cart-total", Label).update(
            f"Subtotal ({len(self._items)} items): "
            f"{format_price(store.cart_total(self._items))}  |  Shipping: Free"
        )

    @on(Button.Pressed, "#btn-checkout")
    @work()
    async def handle_checkout(self) -> None:
        if not self._items:
            self.app.notify("Cart is empty.", severity="warning")
            return

        if not await self.app.push_screen_wait(CheckoutModal(self._items)):
            return

        await self.app.go_to("orders")

