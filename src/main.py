from typing import Dict

from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import LoadingIndicator

from api import client, store
from utils.logger import close_log_file, get_logger
from utils.messages import (
    LoginRequestedMessage,
    ModeSwitchedMessage,
    QuitRequestedMessage,
    UserLogoutMessage,
)
from utils.state import GlobalState
from views.scr_admin import AdminScreen
from views.scr_cart import CartScreen
from views.scr_login import LoginScreen
from views.scr_orders import OrdersScreen
from views.scr_products import ProductsScreen

_logger = get_logger(__name__)


class StorefrontApp(App):
    BINDINGS = [
        Binding("ctrl+t", "switch_light", "Toggle Theme", show=True),
    ]

    MODES = {
        "products": ProductsScreen,
        "cart": CartScreen,
        "orders": OrdersScreen,
        "admin": AdminScreen,
    }

    GUEST_MODES = {"products": "Products", "cart": "Cart", "orders": "My Orders"}
    CUSTOMER_MODES = {"products": "Products", "cart": "Cart", "orders": "My Orders"}
    ADMIN_MODES = {"products": "Products", "admin": "Admin Dashboard"}

    MODE_TITLES = {
        "products": "Products",
        "cart": "Shopping Cart",
        "orders": "My Orders",
        "admin": "Admin Dashboard",
    }

    CSS_PATH = [
        "styles/index.tcss",
        "styles/dialogs.tcss",
        "styles/login.tcss",
        "styles/products.tcss",
        "styles/cart.tcss",
        "styles/orders.tcss",
        "styles/admin.tcss",
    ]

    state: GlobalState

    def __init__(self):
        super().__init__()
        self.state = GlobalState()

    def compose(self) -> ComposeResult:
        yield LoadingIndicator()

    async def on_mount(self) -> None:
        await self.go_to("products")

    def modes_for_role(self) -> Dict[str, str]:
        """Sidebar menu entries for whoever is logged in."""
        if self.state.is_admin:
            return self.ADMIN_MODES
        if self.state.is_logged_in:
            return self.CUSTOMER_MODES
        return self.GUEST_MODES

    async def go_to(self, mode: str) -> None:
        old_mode = self.current_mode
        await self.switch_mode(mode)
        self.screen.post_message(ModeSwitchedMessage(old_mode, mode))

    def action_switch_light(self):
        if self.theme == "textual-dark":
            self.theme = "solarized-light"
        else:
            self.theme = "textual-dark"
        self.notify(f"Theme changed to {self.theme}")

    @on(LoginRequestedMessage)
    @work(exclusive=True, group="auth")
    async def handle_login_requested(self):
        if not await self.push_screen_wait(LoginScreen()):
            return
        await self.go_to("admin" if self.state.is_admin else "products")

    @on(UserLogoutMessage)
    @work(exclusive=True, group="auth")
    async def handle_user_logout(self):
        store.logout(self.state)
        self.notify("Logout successful.")
        await self.go_to("products")

    @on(QuitRequestedMessage)
    @work
    async def handle_quit(self):
        _logger.info("Quitting")
        client.close_session()
        close_log_file()
        self.exit()


if __name__ == "__main__":
    app = StorefrontApp()
    app.run()
