from typing import Optional

from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.validation import Number
from textual.widgets import Button, Checkbox, Input, Label, TextArea

from api import store
from api.errors import StorefrontError, ValidationError
from api.models import Product, ProductInput
from views.base_screen import report_error


class ProductFormModal(ModalScreen[bool]):
    """
    Admin form for adding a product, or editing one when a product is given.
    Saves through the store itself and returns True once saved.
    """

    def __init__(self, product: Optional[Product] = None) -> None:
        super().__init__()
        self._product = product

    def compose(self) -> ComposeResult:
        p = self._product
        with Vertical(id="div-product-form"):
            yield Label(
                "Edit Product" if p else "Add New Product", id="label-form-title"
            )
            with VerticalScroll():
                yield Label("Product Name")
                yield Input(p.name if p else "", id="input-name")
                yield Label("Price")
                yield Input(
                    f"{p.price}" if p else "",
                    id="input-price",
                    type="number",
                    validators=[Number(minimum=0.0)],
                )
                yield Label("Category")
                yield Input(p.category if p else "", id="input-category")
                yield Label("Stock")
                yield Input(
                    str(p.stock) if p else "",
                    id="input-stock",
                    type="integer",
                    validators=[Number(minimum=0)],
                )
                yield Label("Image URL")
                yield Input(p.image if p else "", id="input-image")
                yield Label("Description")
                yield TextArea(p.description if p else "", id="textarea-description")
                yield Checkbox("Active", p.is_active if p else True, id="chk-active")
            with Horizontal(id="div-form-btns"):
                yield Button("Cancel", id="btn-cancel")
                yield Button("Update" if p else "Create", id="btn-save", variant="primary")

    def on_mount(self):
        self.query_one("#input-name").focus()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(False)

    def read_form(self) -> ProductInput:
        """Collect the inputs; raises ValidationError on unparseable numbers."""
        price_str = self.query_one("#input-price", Input).value.strip()
        stock_str = self.query_one("#input-stock", Input).value.strip()
        try:
            price = float(price_str)
        except ValueError:
            raise ValidationError("Price must be a number.")
        try:
            stock = int(stock_str)
        except ValueError:
            raise ValidationError("Stock must be a whole number.")

        return ProductInput(
            name=self.query_one("#input-name", Input).value.strip(),
            price=price,
            category=self.query_one("#input-category", Input).value.strip(),
            description=self.query_one("#textarea-description", TextArea).text.strip(),
            image=self.query_one("#input-image", Input).value.strip(),
            stock=stock,
            is_active=self.query_one("#chk-active", Checkbox).value,
        )

    @on(Button.Pressed, "#btn-save")
    @work(exclusive=True)
    async def handle_save(self):
        btn_save = self.query_one("#btn-save", Button)
        label = btn_save.label
        btn_save.disabled = True
        btn_save.label = "Saving..."
        try:
            data = self.read_form()
            if self._product is None:
                await store.create_product(self.app.state, data)
                self.app.notify(
                    "Product has been successfully created.", title="Product Created"
                )
            else:
                await store.update_product(self.app.state, self._product.id, data)
                self.app.notify(
                    "Product has been successfully updated.", title="Product Updated"
                )
        except StorefrontError as e:
            fallback = "Failed to create product" if self._product is None else "Failed to update product"
            report_error(self, e, fallback)
            btn_save.disabled = False
            btn_save.label = label
            return

        self.dismiss(True)

    @on(Button.Pressed, "#btn-cancel")
    def handle_cancel(self):
        self.dismiss(False)
