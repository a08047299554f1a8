from typing import Dict, List, Optional

from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.events import ScreenResume
from textual.widgets import Button, DataTable, Label, MarkdownViewer

from api import store
from api.errors import StorefrontError
from api.models import Order
from utils.messages import ModeSwitchedMessage
from utils.pure import (
    format_date,
    format_price,
    generate_markdown_table,
    order_status_label,
    payment_mode_label,
)
from views.base_screen import BaseScreen, LoginPrompt, report_error


def render_order_markdown(order: Optional[Order]) -> str:
    if order is None:
        return "### Select an order to view its details."

    md = (
        f"### Order #{order.short_id}\n"
        f"Placed on: {format_date(order.order_date)}  \n"
        f"Status: **{order_status_label(order)}**  \n"
        f"Payment: {payment_mode_label(order.payment_mode)}  \n"
        f"Ship To: {order.shipping_address or '-'}  \n"
    )
    if order.delivery_date is not None:
        md += f"Delivery: {format_date(order.delivery_date)}  \n"
    md += "\n"

    rows = [
        [
            line.product.name,
            line.quantity,
            format_price(line.product.price),
            format_price(line.line_total),
        ]
        for line in order.lines
    ]
    md += generate_markdown_table(
        ["Product", "Qty", "Unit Price", "Line Total"], rows, ["l", "r", "r", "r"]
    )
    md += f"\n\n**Total:** {format_price(order.total_amount)}"
    return md


class OrdersScreen(BaseScreen):
    """
    Customers browse their past orders, newest first.

    Layout:
    - Markdown detail view at the top, showing the highlighted order.
    - Orders table below.
    Guests only see a login prompt and nothing is requested for them.
    """

    # Show some hints in footer
    BINDINGS = [
        Binding("up,down", "noop", "Browse Orders", show=True, key_display="↑↓"),
    ]

    def __init__(self) -> None:
        super().__init__()
        self._orders: Dict[str, Order] = {}

    def compose(self) -> ComposeResult:
        yield from super().compose()
        yield LoginPrompt("Please login to view your orders.", id="div-login-prompt")
        with Vertical(id="div-orders"):
            yield MarkdownViewer(id="md-order-detail", show_table_of_contents=False)
            yield DataTable(id="table-orders")
            with Horizontal(id="hort-table-control"):
                yield Label("", id="label-order-count")
                yield Button("Refresh", id="btn-refresh")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Order #", "Date", "Status", "Items", "Total")

    def action_noop(self) -> None:
        pass

    @on(Button.Pressed, "#btn-refresh")
    @on(ModeSwitchedMessage)
    @on(ScreenResume)
    @work(exclusive=True, group="orders")
    async def handle_refresh(self) -> None:
        logged_in = self.app.state.is_logged_in
        self.query_one("#div-login-prompt").display = not logged_in
        self.query_one("#div-orders").display = logged_in
        if not logged_in:
            return

        try:
            orders: List[Order] = await store.my_orders(self.app.state)
        except StorefrontError as e:
            report_error(self, e, "Unable to load your orders")
            return

        self._orders = {o.id: o for o in orders}
        table = self.query_one(DataTable)
        table.clear()
        for o in orders:
            table.add_row(
                o.short_id,
                format_date(o.order_date),
                order_status_label(o),
                sum(line.quantity for line in o.lines),
                format_price(o.total_amount),
                key=o.id,
            )

        count_label = self.query_one("#label-order-count", Label)
        if orders:
            count_label.update(f"{len(orders)} orders")
            table.move_cursor(row=0)
            await self._render_detail(orders[0])
        else:
            count_label.update("No orders yet")
            await self._render_detail(None)

    @on(DataTable.RowHighlighted, "#table-orders")
    async def handle_row_highlight(self, message: DataTable.RowHighlighted) -> None:
        order_id = message.row_key.value if message.row_key else None
        await self._render_detail(self._orders.get(order_id))

    async def _render_detail(self, order: Optional[Order]) -> None:
        await self.query_one("#md-order-detail", MarkdownViewer).document.update(
            render_order_markdown(order)
        )
