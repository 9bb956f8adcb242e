from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import LoadingIndicator

from core import guard
from core.storefront import Storefront
from db import database
from db.session_records import SessionRecordRepository
from gateway.api import Gateway
from gateway.client import GatewayClient
from utils.config import Settings, load_settings
from utils.logger import get_logger
from utils.messages import (
    CollectionsRefreshedMessage,
    QuitRequestedMessage,
    SessionChangedMessage,
    UserLogoutMessage,
)
from views.scr_catalog import CatalogScreen
from views.scr_login import LoginScreen
from views.scr_orders import OrdersScreen
from views.scr_users import UserDirectoryScreen

_logger = get_logger(__name__)


class StorefrontApp(App):
    BINDINGS = [
        Binding("ctrl+t", "switch_light", "Toggle Theme", show=True),
    ]

    # mode names match the route table in core.guard
    MODES = {
        "catalog": CatalogScreen,
        "orders": OrdersScreen,
        "users": UserDirectoryScreen,
    }

    CSS_PATH = "styles/storefront.tcss"

    storefront: Storefront
    settings: Settings

    def __init__(self, settings: Settings | None = None):
        super().__init__()
        self.settings = settings or load_settings()
        database.configure(self.settings.db_path)
        self._client = GatewayClient(
            self.settings.gateway_url, timeout=self.settings.request_timeout
        )
        self.storefront = Storefront(
            Gateway(self._client),
            SessionRecordRepository(),
            notifier=self.notify_user,
            on_refreshed=self._on_collections_refreshed,
        )
        self.storefront.session.subscribe(self._on_session_changed)
        self._started = False
        self._in_flow = False

    def compose(self) -> ComposeResult:
        yield LoadingIndicator()

    async def on_mount(self) -> None:
        self.title = "Storefront"
        self.set_interval(self.settings.expiry_check_interval, self.check_expiry)
        self.main_flow()

    def notify_user(self, severity: str, message: str) -> None:
        """Transient toast with the configured display duration."""
        self.notify(message, severity=severity, timeout=self.settings.notify_timeout)

    def action_switch_light(self):
        if self.theme == "textual-dark":
            self.theme = "solarized-light"
        else:
            self.theme = "textual-dark"
        self.notify_user("information", f"Theme changed to {self.theme}")

    def _on_collections_refreshed(self, collections) -> None:
        # app-level messages do not reach screens, forward to the active one
        self.screen.post_message(CollectionsRefreshedMessage(collections))

    async def _on_session_changed(self, session) -> None:
        if session is None:
            # logout or expiry: back to the login screen
            if not self._in_flow:
                self.main_flow()
            return
        self.screen.post_message(SessionChangedMessage())

    @work(exclusive=True, group="expiry")
    async def check_expiry(self) -> None:
        await self.storefront.tick()

    @on(UserLogoutMessage)
    @work
    async def handle_user_logout(self, message: UserLogoutMessage):
        await self.storefront.logout(message.reason)

    @on(QuitRequestedMessage)
    def handle_quit(self):
        self._client.close()
        self.exit()

    @work(group="main-flow")
    async def main_flow(self):
        self._in_flow = True
        try:
            if not self._started:
                self._started = True
                await self.storefront.start()

            while self.storefront.state.session is None:
                await self.push_screen_wait(LoginScreen())
        finally:
            self._in_flow = False

        target = guard.resolve_route(self.storefront.state.session, guard.DEFAULT_ROUTE)
        await self.switch_mode(target)
        self.screen.post_message(SessionChangedMessage())


def run() -> None:
    _logger.info("Starting storefront")
    StorefrontApp().run()


if __name__ == "__main__":
    run()
