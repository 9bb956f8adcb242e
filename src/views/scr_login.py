from textual import on, work
from textual.app import ComposeResult
from textual.containers import Container, Horizontal, Vertical
from textual.events import Key
from textual.widgets import Button, Input, Label, Select, TabbedContent, TabPane

from gateway.models import SELF_REGISTER_ROLES
from views.base_screen import BaseScreen
from views.modal_dialog import QuitDialogModal


class LoginScreen(BaseScreen):
    """
    Sign in or register. Dismisses once a session exists.
    """

    ROUTE = "login"

    def __init__(self):
        super().__init__(show_sidebar=False)

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with TabbedContent(id="super-tab-loginscr"):
            with TabPane("Sign in", id="tab-login"):
                with Vertical(id="div-login"):
                    yield Label("Email")
                    yield Input(placeholder="user@example.com", id="input-login-email")
                    yield Label("Password")
                    yield Input(
                        placeholder="*********", password=True, id="input-login-pwd"
                    )
                    with Horizontal(id="div-login-btns"):
                        yield Button("Quit", id="btn-quit")
                        yield Button("Sign in", id="btn-login", variant="primary")

            with TabPane("Sign up", id="tab-signup"):
                with Vertical(id="div-reg"):
                    yield Label("Name")
                    yield Input(placeholder="Jane Doe", id="input-reg-name")
                    yield Label("Email")
                    yield Input(placeholder="user@example.com", id="input-reg-email")
                    yield Label("Password")
                    yield Input(
                        placeholder="at least 6 characters",
                        password=True,
                        id="input-reg-pwd",
                    )
                    yield Label("Account type")
                    yield Select(
                        [(role.title(), role) for role in SELF_REGISTER_ROLES],
                        value="CUSTOMER",
                        allow_blank=False,
                        id="select-reg-role",
                    )
                    with Container(id="div-reg-btns"):
                        yield Button("Register", id="btn-reg", variant="primary")

    def on_mount(self) -> None:
        self.query_one("#input-login-email").focus()

    def on_key(self, event: Key) -> None:
        if event.key != "enter":
            return
        if self.focused == self.query_one("#input-login-pwd"):
            self.handle_login_submit()
        elif self.focused == self.query_one("#input-reg-pwd"):
            self.handle_registration_submit()

    @on(Button.Pressed, "#btn-login")
    @work(exclusive=True, group="auth")
    async def handle_login_submit(self) -> None:
        email = self.query_one("#input-login-email", Input).value.strip()
        pwd = self.query_one("#input-login-pwd", Input).value

        session = await self.storefront.attempt(self.storefront.login, email, pwd)
        if session:
            self.dismiss()
            return

        input_login_pwd = self.query_one("#input-login-pwd", Input)
        input_login_pwd.value = ""
        input_login_pwd.focus()
        input_login_pwd.add_class("-invalid")

    @on(Button.Pressed, "#btn-reg")
    @work(exclusive=True, group="auth")
    async def handle_registration_submit(self) -> None:
        name = self.query_one("#input-reg-name", Input).value
        email = self.query_one("#input-reg-email", Input).value
        pwd = self.query_one("#input-reg-pwd", Input).value
        role = self.query_one("#select-reg-role", Select).value

        user = await self.storefront.attempt(
            self.storefront.register, name, email, pwd, role
        )
        if user is None:
            return

        # registration never signs in; prefill the sign-in form instead
        self.get_child_by_type(TabbedContent).active = "tab-login"
        self.query_one("#input-login-email", Input).value = email.strip()
        input_login_pwd = self.query_one("#input-login-pwd", Input)
        input_login_pwd.value = ""
        input_login_pwd.focus()

    @on(Button.Pressed, "#btn-quit")
    def handle_quit_(self) -> None:
        self.app.push_screen(QuitDialogModal())
