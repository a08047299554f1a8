from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container, Vertical
from textual.events import Resize
from textual.screen import Screen
from textual.widget import Widget
from textual.widgets import Button, Footer, Header, Label, ListItem, ListView, Markdown

from api import store
from api.errors import AuthRequiredError, StorefrontError
from utils.logger import get_logger
from utils.messages import (
    CartChangedMessage,
    LoginRequestedMessage,
    ModeSwitchedMessage,
    UserLogoutMessage,
)
from utils.pure import generate_markdown_table
from views.modal_dialog import DialogModal, QuitDialogModal
from views.modal_resize import ResizeScreenPromptModal

_logger = get_logger(__name__)


def report_error(widget: Widget, error: StorefrontError, fallback: str) -> None:
    """Show a failed operation as a toast; the user can simply retry."""
    title = "Login Required" if isinstance(error, AuthRequiredError) else "Error"
    widget.notify(str(error) or fallback, title=title, severity="error")


class Sidebar(Container):
    def compose(self) -> ComposeResult:
        yield Label("User Info", id="label-info-1")
        yield Markdown("", id="md-userinfo")
        yield Button("Log in", id="btn-auth", variant="primary")
        yield Label("Menu", id="label-info-2")
        yield ListView(id="list-menu")

    async def on_mount(self):
        await self.populate()

    async def populate(self) -> None:
        """Rebuild user info and menu for whoever is logged in now."""
        state = self.app.state
        user = state.user
        btn_auth = self.query_one("#btn-auth", Button)

        if user is None:
            rows = [["User", "Guest"]]
            btn_auth.label = "Log in"
            btn_auth.variant = "primary"
        else:
            rows = [
                ["Name", user.username],
                ["Email", user.email],
                ["Role", "Admin" if user.is_admin else "Customer"],
            ]
            btn_auth.label = "Log out"
            btn_auth.variant = "error"
        await self.query_one(Markdown).update(
            generate_markdown_table(None, rows, ["l", "l"])
        )

        list_menu: ListView = self.query_one("#list-menu")
        await list_menu.clear()
        await list_menu.extend(
            [
                ListItem(Label(v), id="list-menu-item-" + k)
                for k, v in self.app.modes_for_role().items()
            ]
        )
        self.highlight_item(self.app.current_mode)
        self.refresh_cart_badge()

    @work(exclusive=True, group="cart-badge")
    async def refresh_cart_badge(self) -> None:
        """Show the number of units in the cart on the Cart menu entry (customers)."""
        state = self.app.state
        if not state.is_logged_in or state.is_admin:
            return
        try:
            count = await store.cart_count(state)
        except StorefrontError as e:
            # the cart screen reports the failure to the user
            _logger.warning(f"Cart badge not updated: {e}")
            return
        for label in self.query("#list-menu-item-cart Label").results(Label):
            label.update(f"Cart ({count})" if count else "Cart")

    async def on_list_view_selected(self, event: ListView.Selected):
        selected_mode = event.item.id.removeprefix("list-menu-item-")
        self.highlight_item(self.app.current_mode)
        if self.app.current_mode != selected_mode:
            await self.app.go_to(selected_mode)

    @on(Button.Pressed, "#btn-auth")
    @work()
    async def handle_auth(self):
        if self.app.state.user is None:
            self.post_message(LoginRequestedMessage())
            return

        if not await self.app.push_screen_wait(
            DialogModal(
                "Are you sure you want to log out?",
                primary_text="Yes",
                secondary_text="No",
                tone="warning",
            )
        ):
            return

        self.post_message(UserLogoutMessage())

    def highlight_item(self, mode_str: str):
        list_menu = self.query_one("#list-menu")
        for item in list_menu.children:
            item.highlighted = item.id == "list-menu-item-" + mode_str


class LoginPrompt(Vertical):
    """Shown instead of a screen's content when nobody is logged in."""

    def __init__(self, caption: str, **kwargs):
        super().__init__(**kwargs)
        self.caption = caption

    def compose(self) -> ComposeResult:
        yield Label("Login Required", classes="prompt-title")
        yield Label(self.caption)
        yield Button("Login", classes="btn-prompt-login", variant="primary")

    @on(Button.Pressed, ".btn-prompt-login")
    def handle_login(self):
        self.post_message(LoginRequestedMessage())


class BaseScreen(Screen):
    """
    Inherited by all screens, contains common elements like
    headers, footers, sidebar, and keybindings.
    """

    BINDINGS = [
        Binding("ctrl+z", "quit", "Quit App", show=True),
    ]

    MIN_WIDTH = 80
    MIN_HEIGHT = 24

    def __init__(self):
        super().__init__()

        self.configure()

    def configure(
        self,
        header_sub_title: str = "Storefront",
        show_sidebar: bool = True,
    ) -> None:
        """
        configure behavior of the base screen
        """

        self.app.title = "Storefront"
        self.sub_title = header_sub_title
        for k, v in self.app.MODES.items():
            if isinstance(self, v):
                self.sub_title = self.app.MODE_TITLES.get(k, header_sub_title)

        self._show_sidebar = show_sidebar

    def compose(self) -> ComposeResult:
        if self._show_sidebar:
            yield Sidebar()
        yield Header()
        yield Footer(show_command_palette=False)

    async def on_resize(self, event: Resize) -> None:
        too_small = (
            event.size.width < self.MIN_WIDTH or event.size.height < self.MIN_HEIGHT
        )
        if too_small and not isinstance(self.app.screen, ResizeScreenPromptModal):
            self.app.push_screen(
                ResizeScreenPromptModal(self.MIN_WIDTH, self.MIN_HEIGHT)
            )

    async def on_screen_resume(self) -> None:
        # role may have changed while this screen was in the background
        for sidebar in self.query(Sidebar):
            await sidebar.populate()

    @on(CartChangedMessage)
    def handle_cart_changed(self) -> None:
        for sidebar in self.query(Sidebar):
            sidebar.refresh_cart_badge()

    @on(ModeSwitchedMessage)
    async def handle_mode_switched(self, message: ModeSwitchedMessage):
        # also fired after login/logout without a screen change
        for sidebar in self.query(Sidebar):
            await sidebar.populate()
            sidebar.highlight_item(message.new_mode)

    @work()
    async def action_quit(self):
        await self.app.push_screen_wait(QuitDialogModal())
