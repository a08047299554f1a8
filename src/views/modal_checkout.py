from typing import List

from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, MarkdownViewer, RadioButton, RadioSet

from api import store
from api.errors import StorefrontError, ValidationError
from api.models import CartItem
from utils.pure import format_price, generate_markdown_table
from views.base_screen import report_error
from views.modal_dialog import DialogModal


class CheckoutModal(ModalScreen[bool]):
    """
    A modal screen for check out: order summary, shipping address and payment mode.
    Return True once the order is placed, False otherwise.
    """

    def __init__(self, items: List[CartItem]):
        super().__init__()
        self._items = items

    def compose(self) -> ComposeResult:
        with Vertical():
            yield MarkdownViewer("", show_table_of_contents=False)
            yield Label("Shipping Address")
            yield Input(
                placeholder="Enter your complete address...",
                id="input-address-line",
            )
            yield Label("Payment Method")
            with RadioSet(id="radioset-payment"):
                yield RadioButton("Cash on Delivery", value=True, id="radio-cod")
                yield RadioButton("Online Payment", id="radio-online")
            with Horizontal():
                yield Button("Go Back", id="btn-quit")
                yield Button(
                    "Place Order", id="btn-submit", variant="primary", disabled=True
                )

    async def on_mount(self):
        headers = ["Product Name", "Unit Price", "Quantity", "Total Price"]
        rows = [
            [
                item.product.name,
                format_price(item.product.price),
                item.quantity,
                format_price(item.line_total),
            ]
            for item in self._items
        ]
        md = "### Order Summary\n\n"
        md += generate_markdown_table(headers, rows, ["l", "c", "c", "c"])
        md += f"\n\n**Subtotal:** {format_price(store.cart_total(self._items))}  \n"
        md += "**Shipping:** Free"
        await self.query_one(MarkdownViewer).document.update(md)
        self.query_one("#input-address-line").focus()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(False)

    @on(Input.Changed, "#input-address-line")
    def handle_address_changed(self, message: Input.Changed) -> None:
        self.query_one("#btn-submit", Button).disabled = not message.value.strip()

    def payment_mode(self) -> str:
        pressed = self.query_one("#radioset-payment", RadioSet).pressed_button
        if pressed is not None and pressed.id == "radio-online":
            return "online"
        return "cod"

    @on(Button.Pressed, "#btn-submit")
    @work(exclusive=True)
    async def handle_submit(self):
        address_input = self.query_one("#input-address-line", Input)
        if not address_input.value.strip():
            address_input.focus()
            address_input.add_class("-invalid")
            report_error(
                self,
                ValidationError("Please enter your shipping address"),
                "Shipping Address Required",
            )
            return

        if not await self.app.push_screen_wait(
            DialogModal(
                "Place order? This cannot be undone.",
                primary_text="Yes",
                secondary_text="No",
                tone="positive",
            )
        ):
            return

        btn_submit = self.query_one("#btn-submit", Button)
        btn_submit.disabled = True
        btn_submit.label = "Placing Order..."
        try:
            order = await store.place_order(
                self.app.state, address_input.value, self.payment_mode()
            )
        except StorefrontError as e:
            report_error(self, e, "Failed to place order")
            btn_submit.disabled = False
            btn_submit.label = "Place Order"
            return

        self.app.notify(
            f"Your order #{order.short_id} has been placed and will be delivered soon.",
            title="Order Placed Successfully!",
        )
        self.dismiss(True)

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self):
        self.dismiss(False)
