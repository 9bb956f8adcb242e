import time

from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.events import ScreenResume
from textual.screen import Screen
from textual.widgets import Button, Footer, Header, Label, ListItem, ListView, Markdown

from core import guard
from utils.messages import (
    CollectionsRefreshedMessage,
    SessionChangedMessage,
    UserLogoutMessage,
)
from utils.pure import format_expiry, generate_markdown_table
from views.modal_dialog import DialogModal, QuitDialogModal

ROLE_TITLES = {
    "ADMIN": "Administrator",
    "SELLER": "Seller",
    "CUSTOMER": "Customer",
}


class Sidebar(Container):
    def compose(self) -> ComposeResult:
        yield Label("Signed in as", id="label-info-1")
        yield Markdown("", id="md-userinfo")
        yield Button("Log out", id="btn-logout", variant="error")
        yield Label("Menu", id="label-info-2")
        yield ListView(id="list-menu")

    async def on_mount(self) -> None:
        await self.render_session()

    async def render_session(self) -> None:
        session = self.app.storefront.state.session
        list_menu: ListView = self.query_one("#list-menu", ListView)
        await list_menu.clear()
        if session is None:
            await self.query_one(Markdown).update("")
            return

        user = session.user
        table_rows = [
            ["Name", user.name or "-"],
            ["Email", user.email or "-"],
            ["Role", ROLE_TITLES.get(user.role, user.role)],
            ["Session", format_expiry(session.expires_at, time.time())],
        ]
        await self.query_one(Markdown).update(
            generate_markdown_table(None, table_rows, ["l", "l"])
        )
        await list_menu.extend(
            [
                ListItem(Label(route.title), id="list-menu-item-" + route.name)
                for route in guard.visible_routes(session)
            ]
        )
        self.highlight_item(self.app.current_mode)

    async def on_list_view_selected(self, event: ListView.Selected) -> None:
        wanted = event.item.id.removeprefix("list-menu-item-")
        target = guard.resolve_route(self.app.storefront.state.session, wanted)
        if target == guard.LOGIN_ROUTE:
            return
        if self.app.current_mode != target:
            await self.app.switch_mode(target)

    @on(Button.Pressed, "#btn-logout")
    @work()
    async def handle_logout(self) -> None:
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

    def highlight_item(self, mode_str: str) -> None:
        for item in self.query_one("#list-menu", ListView).children:
            item.highlighted = item.id == "list-menu-item-" + mode_str


class BaseScreen(Screen):
    """
    Inherited by all screens behind the login: header, footer,
    sidebar and the quit binding.
    """

    BINDINGS = [
        Binding("ctrl+z", "quit", "Quit App", show=True),
    ]

    ROUTE = ""

    def __init__(self, show_sidebar: bool = True) -> None:
        super().__init__()
        self._show_sidebar = show_sidebar
        route = guard.ROUTES.get(self.ROUTE)
        self.sub_title = route.title if route else ""

    @property
    def storefront(self):
        return self.app.storefront

    def compose(self) -> ComposeResult:
        if self._show_sidebar:
            yield Sidebar()
        yield Header()
        yield Footer(show_command_palette=False)

    @on(ScreenResume)
    @on(SessionChangedMessage)
    async def handle_session_changed(self) -> None:
        if self._show_sidebar:
            await self.query_one(Sidebar).render_session()
        self.render_collections(frozenset({"users", "products", "orders"}))

    @on(CollectionsRefreshedMessage)
    def handle_collections_refreshed(self, message: CollectionsRefreshedMessage) -> None:
        self.render_collections(message.collections)

    def render_collections(self, collections) -> None:
        """Overridden by screens that display cached collections."""

    @work()
    async def action_quit(self) -> None:
        await self.app.push_screen_wait(QuitDialogModal())
