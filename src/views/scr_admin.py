import asyncio
from typing import Dict, Optional, Set

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.widgets import (
    Button,
    DataTable,
    Label,
    Markdown,
    TabbedContent,
    TabPane,
)

from api import store
from api.errors import StorefrontError
from api.models import Order, Product, User
from utils.messages import CatalogChangedMessage, ModeSwitchedMessage, NewOrderMessage
from utils.pure import (
    dashboard_stats,
    format_date,
    format_price,
    generate_markdown_table,
    order_status_label,
    payment_mode_label,
    stock_label,
    user_actions,
)
from views.base_screen import BaseScreen, report_error
from views.modal_dialog import ConfirmDeleteModal, DialogModal
from views.modal_product_form import ProductFormModal


def _selected_key(table: DataTable) -> Optional[str]:
    if table.row_count == 0:
        return None
    row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
    return row_key.value


def render_stats_markdown(stats: Dict[str, float]) -> str:
    rows = [
        ["Total Revenue", format_price(stats["total_revenue"])],
        ["Total Orders", stats["total_orders"]],
        ["Pending Orders", stats["pending_orders"]],
        ["Completed Orders", stats["completed_orders"]],
        ["Total Products", stats["total_products"]],
        ["Low Stock Products", stats["low_stock_products"]],
        ["Total Users", stats["total_users"]],
    ]
    return "### Dashboard\n\n" + generate_markdown_table(
        ["Metric", "Value"], rows, ["l", "r"]
    )


class AdminScreen(BaseScreen):
    """
    Admin dashboard: statistics on top, then one tab each for orders,
    products and users. Anybody else gets "Access Denied" and nothing is loaded.
    """

    def __init__(self) -> None:
        super().__init__()
        self._orders: Dict[str, Order] = {}
        self._products: Dict[str, Product] = {}
        self._users: Dict[str, User] = {}
        self._busy_panes: Set[str] = set()

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical(id="div-access-denied"):
            yield Label("Access Denied", classes="prompt-title")
            yield Label("You don't have permission to access this page.")
        with Vertical(id="div-admin"):
            yield Markdown("", id="md-stats")
            with TabbedContent(id="tabs-admin"):
                with TabPane("Orders", id="tab-orders"):
                    yield DataTable(id="table-admin-orders")
                    with Horizontal(classes="hort-admin-actions"):
                        yield Button("Mark Pending", id="btn-order-pending")
                        yield Button(
                            "Mark Completed", id="btn-order-completed", variant="success"
                        )
                        yield Button("Cancel Order", id="btn-order-cancel", variant="error")
                with TabPane("Products", id="tab-products"):
                    yield DataTable(id="table-admin-products")
                    with Horizontal(classes="hort-admin-actions"):
                        yield Button("Add Product", id="btn-product-add", variant="primary")
                        yield Button("Edit", id="btn-product-edit")
                        yield Button("Delete", id="btn-product-delete", variant="error")
                with TabPane("Users", id="tab-users"):
                    yield DataTable(id="table-admin-users")
                    with Horizontal(classes="hort-admin-actions"):
                        yield Button("Block / Unblock", id="btn-user-block", variant="warning")
                        yield Button("Delete", id="btn-user-delete", variant="error")
            with Horizontal(id="hort-admin-footer"):
                yield Button("Refresh", id="btn-refresh")

    def on_mount(self) -> None:
        columns = {
            "#table-admin-orders": ("Order #", "Customer", "Date", "Payment", "Status", "Total"),
            "#table-admin-products": ("Name", "Category", "Price", "Stock", "Active"),
            "#table-admin-users": ("Username", "Email", "Role", "Status"),
        }
        for selector, cols in columns.items():
            table = self.query_one(selector, DataTable)
            table.cursor_type = "row"
            table.zebra_stripes = True
            table.add_columns(*cols)

    @on(ScreenResume)
    @on(ModeSwitchedMessage)
    @on(NewOrderMessage)
    @on(CatalogChangedMessage)
    @on(Button.Pressed, "#btn-refresh")
    @work(exclusive=True, group="admin")
    async def handle_reload(self) -> None:
        is_admin = self.app.state.is_admin
        self.query_one("#div-access-denied").display = not is_admin
        self.query_one("#div-admin").display = is_admin
        if not is_admin:
            return

        state = self.app.state
        try:
            orders, products, users = await asyncio.gather(
                store.all_orders(state),
                store.list_products(state),
                store.list_users(state),
            )
        except StorefrontError as e:
            report_error(self, e, "Unable to load dashboard")
            return

        await self.query_one("#md-stats", Markdown).update(
            render_stats_markdown(dashboard_stats(products, orders, users))
        )

        self._orders = {o.id: o for o in orders}
        table = self.query_one("#table-admin-orders", DataTable)
        table.clear()
        for o in orders:
            table.add_row(
                o.short_id,
                o.user.username if o.user else o.user_id,
                format_date(o.order_date),
                payment_mode_label(o.payment_mode),
                order_status_label(o),
                format_price(o.total_amount),
                key=o.id,
            )

        self._products = {p.id: p for p in products}
        table = self.query_one("#table-admin-products", DataTable)
        table.clear()
        for p in products:
            table.add_row(
                p.name,
                p.category,
                format_price(p.price),
                stock_label(p),
                "Yes" if p.is_active else "No",
                key=p.id,
            )

        self._users = {u.id: u for u in users}
        table = self.query_one("#table-admin-users", DataTable)
        table.clear()
        for u in users:
            table.add_row(
                u.username,
                u.email,
                "Admin" if u.is_admin else "Customer",
                "Blocked" if u.is_blocked else "Active",
                key=u.id,
            )
        if "tab-users" not in self._busy_panes:
            self._refresh_user_buttons()

    def _set_busy(self, pane_id: str, busy: bool) -> None:
        """Disable a tab's action buttons while one of its requests is in flight."""
        self._busy_panes.discard(pane_id)
        if busy:
            self._busy_panes.add(pane_id)
        for btn in self.query(f"#{pane_id} .hort-admin-actions Button"):
            btn.disabled = busy
        if pane_id == "tab-users" and not busy:
            self._refresh_user_buttons()

    # ---------------------------
    # Orders
    # ---------------------------

    def _selected_order(self) -> Optional[Order]:
        return self._orders.get(_selected_key(self.query_one("#table-admin-orders", DataTable)))

    @on(Button.Pressed, "#btn-order-pending")
    def handle_order_pending(self):
        self.change_order(status="pending")

    @on(Button.Pressed, "#btn-order-completed")
    def handle_order_completed(self):
        self.change_order(status="completed")

    @on(Button.Pressed, "#btn-order-cancel")
    def handle_order_cancel(self):
        self.change_order(is_cancelled=True)

    @work(group="mutate")
    async def change_order(
        self, status: Optional[str] = None, is_cancelled: Optional[bool] = None
    ) -> None:
        order = self._selected_order()
        if order is None:
            self.notify("Select an order first.", severity="warning")
            return
        self._set_busy("tab-orders", True)
        try:
            if is_cancelled and not await self.app.push_screen_wait(
                DialogModal(
                    f"Cancel order #{order.short_id}?",
                    primary_text="Yes",
                    secondary_text="No",
                    tone="error",
                )
            ):
                return
            await store.update_order(
                self.app.state, order, status=status, is_cancelled=is_cancelled
            )
        except StorefrontError as e:
            report_error(self, e, "Failed to update order")
            return
        finally:
            self._set_busy("tab-orders", False)

        self.notify(f"Order #{order.short_id} updated.", title="Order Updated")
        self.post_message(NewOrderMessage())

    # ---------------------------
    # Products
    # ---------------------------

    def _selected_product(self) -> Optional[Product]:
        return self._products.get(
            _selected_key(self.query_one("#table-admin-products", DataTable))
        )

    @on(Button.Pressed, "#btn-product-add")
    @work(group="mutate")
    async def handle_product_add(self) -> None:
        if await self.app.push_screen_wait(ProductFormModal()):
            self.post_message(CatalogChangedMessage())

    @on(Button.Pressed, "#btn-product-edit")
    @work(group="mutate")
    async def handle_product_edit(self) -> None:
        product = self._selected_product()
        if product is None:
            self.notify("Select a product first.", severity="warning")
            return
        if await self.app.push_screen_wait(ProductFormModal(product)):
            self.post_message(CatalogChangedMessage())

    @on(Button.Pressed, "#btn-product-delete")
    @work(group="mutate")
    async def handle_product_delete(self) -> None:
        product = self._selected_product()
        if product is None:
            self.notify("Select a product first.", severity="warning")
            return
        self._set_busy("tab-products", True)
        try:
            if not await self.app.push_screen_wait(ConfirmDeleteModal("product")):
                return
            await store.delete_product(self.app.state, product.id)
        except StorefrontError as e:
            report_error(self, e, "Failed to delete product")
            return
        finally:
            self._set_busy("tab-products", False)

        self.notify("Product has been successfully deleted.", title="Product Deleted")
        self.post_message(CatalogChangedMessage())

    # ---------------------------
    # Users
    # ---------------------------

    def _selected_user(self) -> Optional[User]:
        return self._users.get(_selected_key(self.query_one("#table-admin-users", DataTable)))

    def _refresh_user_buttons(self) -> None:
        target = self._selected_user()
        actions = user_actions(self.app.state.user, target) if target else []
        btn_block = self.query_one("#btn-user-block", Button)
        btn_block.disabled = not actions
        btn_block.label = "Unblock" if "unblock" in actions else "Block"
        # admins can't be deleted from here
        self.query_one("#btn-user-delete").display = "delete" in actions

    @on(DataTable.RowHighlighted, "#table-admin-users")
    def handle_user_highlight(self) -> None:
        if "tab-users" not in self._busy_panes:
            self._refresh_user_buttons()

    @on(Button.Pressed, "#btn-user-block")
    @work(group="mutate")
    async def handle_user_block(self) -> None:
        user = self._selected_user()
        if user is None:
            return
        blocked = not user.is_blocked
        self._set_busy("tab-users", True)
        try:
            await store.set_user_blocked(self.app.state, user, blocked)
        except StorefrontError as e:
            report_error(self, e, "Failed to update user")
            return
        finally:
            self._set_busy("tab-users", False)

        self.notify(
            f"{user.username} has been {'blocked' if blocked else 'unblocked'}.",
            title="User Updated",
        )
        self.handle_reload()

    @on(Button.Pressed, "#btn-user-delete")
    @work(group="mutate")
    async def handle_user_delete(self) -> None:
        user = self._selected_user()
        if user is None or "delete" not in user_actions(self.app.state.user, user):
            return
        self._set_busy("tab-users", True)
        try:
            if not await self.app.push_screen_wait(ConfirmDeleteModal("user")):
                return
            await store.delete_user(self.app.state, user)
        except StorefrontError as e:
            report_error(self, e, "Failed to delete user")
            return
        finally:
            self._set_busy("tab-users", False)

        self.notify(f"{user.username} has been deleted.", title="User Deleted")
        self.handle_reload()
