from typing import List, Optional

from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.widgets import Button, DataTable, Input, Label, OptionList

from api import store
from api.errors import StorefrontError
from api.models import Product
from utils.messages import CartChangedMessage, CatalogChangedMessage, ModeSwitchedMessage
from utils.pure import (
    categories,
    filter_products,
    format_price,
    product_actions,
    stock_label,
)
from views.base_screen import BaseScreen, report_error
from views.modal_dialog import ConfirmDeleteModal
from views.modal_prod_detail import ProdDetailModal
from views.modal_product_form import ProductFormModal

ALL_CATEGORIES = "All Categories"


class ProductsScreen(BaseScreen):
    """
    Catalog browsing for everybody, guests included.
    Search and category filtering happen client-side over the cached product list.
    """

    BINDINGS = [
        # only here to be displayed in footer
        Binding("enter", "noop", "View Product", show=True, key_display="⏎"),
        Binding("a", "quick_add", "Add 1 to Cart", show=True),
        Binding("e", "edit_product", "Edit", show=True),
        Binding("d", "delete_product", "Delete", show=True),
    ]

    # binding action -> entry of product_actions() that allows it
    ACTION_CAPABILITIES = {
        "quick_add": "add_to_cart",
        "edit_product": "edit",
        "delete_product": "delete",
    }

    def __init__(self):
        super().__init__()
        self._products: List[Product] = []
        self._categories: List[str] = []
        self._search_term = ""
        self._category = ""

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical(id="div-products"):
            with Horizontal(id="hort-product-filters"):
                yield Input(id="input-search", placeholder="Search products...")
                yield Button("Refresh", id="btn-refresh")
                yield Button("Add Product", id="btn-add-product", variant="primary")
            with Horizontal(id="hort-product-body"):
                yield OptionList(ALL_CATEGORIES, id="optlist-categories")
                yield DataTable(id="table-products")
            yield Label("", id="label-product-count")

    def on_mount(self):
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Name", "Category", "Price", "Stock", "Rating")

        self.query_one("#input-search").focus()

    def action_noop(self) -> None:
        pass

    def check_action(self, action: str, parameters) -> Optional[bool]:
        needed = self.ACTION_CAPABILITIES.get(action)
        if needed is None:
            return True
        return needed in product_actions(self.app.state.user)

    @on(ScreenResume)
    @on(ModeSwitchedMessage)
    @on(CatalogChangedMessage)
    @on(Button.Pressed, "#btn-refresh")
    @work(exclusive=True)
    async def handle_reload(self) -> None:
        # the add button only exists for admins
        self.query_one("#btn-add-product").display = self.app.state.is_admin
        self.refresh_bindings()

        try:
            self._products = await store.list_products(self.app.state)
        except StorefrontError as e:
            report_error(self, e, "Unable to load products")
            self.query_one("#label-product-count", Label).update(
                "Unable to load products. Check that the api server is running."
            )
            return

        new_categories = categories(self._products)
        if new_categories != self._categories:
            self._categories = new_categories
            opt_list = self.query_one("#optlist-categories", OptionList)
            opt_list.clear_options()
            opt_list.add_options([ALL_CATEGORIES, *self._categories])
            if self._category not in self._categories:
                self._category = ""

        self.render_table()

    def render_table(self) -> None:
        shown = filter_products(self._products, self._search_term, self._category)

        table = self.query_one(DataTable)
        table.clear()
        for p in shown:
            rating = f"{p.average_rating:.1f} ({len(p.reviews)})" if p.reviews else "-"
            table.add_row(
                p.name,
                p.category,
                format_price(p.price),
                stock_label(p),
                rating,
                key=p.id,
            )

        count_label = self.query_one("#label-product-count", Label)
        if shown:
            count_label.update(f"{len(shown)} of {len(self._products)} products")
        elif self._search_term or self._category:
            count_label.update("No products found. Try adjusting your search or filters")
        else:
            count_label.update("No products available at the moment")

    @on(Input.Changed, "#input-search")
    def handle_search(self, message: Input.Changed) -> None:
        self._search_term = message.value
        self.render_table()

    @on(OptionList.OptionSelected, "#optlist-categories")
    def handle_category(self, message: OptionList.OptionSelected) -> None:
        # index 0 is "All Categories"
        idx = message.option_index
        self._category = self._categories[idx - 1] if idx > 0 else ""
        self.render_table()

    @on(DataTable.RowSelected, "#table-products")
    @work()
    async def handle_view_product(self, message: DataTable.RowSelected) -> None:
        product_id = message.row_key.value
        if await self.app.push_screen_wait(ProdDetailModal(product_id)):
            self.handle_reload()

    @on(Button.Pressed, "#btn-add-product")
    @work()
    async def handle_add_product(self) -> None:
        if await self.app.push_screen_wait(ProductFormModal()):
            self.post_message(CatalogChangedMessage())

    def _highlighted_product(self) -> Optional[Product]:
        table = self.query_one(DataTable)
        if table.row_count == 0:
            return None
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        return next((p for p in self._products if p.id == row_key.value), None)

    @work(group="quick")
    async def action_quick_add(self) -> None:
        product = self._highlighted_product()
        if product is None:
            return
        try:
            # guests and zero stock are rejected before any request
            await store.add_to_cart(self.app.state, product, 1)
        except StorefrontError as e:
            report_error(self, e, "Failed to add to cart")
            return

        self.notify(f"{product.name} has been added to your cart.", title="Added to Cart")
        self.post_message(CartChangedMessage())

    @work(group="quick")
    async def action_edit_product(self) -> None:
        product = self._highlighted_product()
        if product is None:
            return
        if await self.app.push_screen_wait(ProductFormModal(product)):
            self.post_message(CatalogChangedMessage())

    @work(group="quick")
    async def action_delete_product(self) -> None:
        product = self._highlighted_product()
        if product is None:
            return
        if not await self.app.push_screen_wait(ConfirmDeleteModal("product")):
            return
        try:
            await store.delete_product(self.app.state, product.id)
        except StorefrontError as e:
            report_error(self, e, "Failed to delete product")
            return

        self.notify("Product has been successfully deleted.", title="Product Deleted")
        self.post_message(CatalogChangedMessage())
