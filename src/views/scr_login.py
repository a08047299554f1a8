from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.events import Key
from textual.widgets import Button, Input, Label

from api import store
from api.errors import StorefrontError
from views.base_screen import BaseScreen, report_error


class LoginScreen(BaseScreen):
    """
    Sign in by email. Dismisses with True once state.user is set,
    False if the user backs out.
    """

    def __init__(self):
        super().__init__()
        self.configure(header_sub_title="Login", show_sidebar=False)

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical(id="div-login"):
            yield Label("Welcome Back", id="label-login-title")
            yield Label("Sign in to your account to continue shopping")
            yield Label("Email")
            yield Input(placeholder="you@example.com", id="input-login-email")
            with Horizontal(id="div-login-btns"):
                yield Button("Cancel", id="btn-cancel")
                yield Button("Sign In", id="btn-login", variant="primary")

    def on_mount(self):
        self.query_one("#input-login-email").focus()

    def on_key(self, event: Key) -> None:
        if event.key == "escape":
            self.dismiss(False)

    @on(Input.Submitted, "#input-login-email")
    @on(Button.Pressed, "#btn-login")
    @work(exclusive=True)
    async def handle_login_submit(self) -> None:
        email_input = self.query_one("#input-login-email", Input)
        email = email_input.value.strip()

        if not email:
            self.notify("Email cannot be empty!", severity="error")
            return

        btn_login = self.query_one("#btn-login", Button)
        btn_login.disabled = True
        btn_login.label = "Signing In..."
        try:
            user = await store.login(self.app.state, email)
        except StorefrontError as e:
            report_error(self, e, "Login failed")
            email_input.add_class("-invalid")
            email_input.focus()
            return
        finally:
            btn_login.disabled = False
            btn_login.label = "Sign In"

        self.notify(f"Hello {user.username}!")
        self.dismiss(True)

    @on(Button.Pressed, "#btn-cancel")
    def handle_cancel(self) -> None:
        self.dismiss(False)
