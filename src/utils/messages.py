from textual.message import Message


class QuitRequestedMessage(Message):
    """
    broadcasted when the app is about to quit
    """

    bubble = True


class UserLogoutMessage(Message):
    """
    posted by the sidebar logout button, handled at app level
    """

    bubble = True


class LoginRequestedMessage(Message):
    """
    A guest pressed a login button (sidebar, cart or orders prompt).
    App opens the login screen.
    """

    bubble = True


class CartChangedMessage(Message):
    """
    Fired after a cart line changes (-/+ or remove).
    The cache is already invalidated by then; listeners just reload.
    """

    bubble = True


class NewOrderMessage(Message):
    """
    Fired when an admin changes an order.
    Listened to by the admin dashboard
    """

    bubble = True


class CatalogChangedMessage(Message):
    """
    Fired after a product is created, edited or deleted
    """

    bubble = True


class ModeSwitchedMessage(Message):
    """
    fired whenever switch_mode is called
    must be fired from app level
    """

    bubble = True

    def __init__(self, old_mode: str, new_mode: str) -> None:
        super().__init__()
        self.old_mode = old_mode
        self.new_mode = new_mode
