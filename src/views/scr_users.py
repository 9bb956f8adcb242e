from collections import Counter

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.widgets import Button, DataTable, Markdown

from views.base_screen import ROLE_TITLES, BaseScreen


class UserDirectoryScreen(BaseScreen):
    """
    Admin-only list of registered users.
    """

    ROUTE = "users"

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield Markdown("", id="md-user-summary")
            yield DataTable(id="table-users")
        with Horizontal(id="hort-users-controls"):
            yield Button("Refresh", id="btn-refresh")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Name", "Email", "Role")
        self.render_collections(frozenset({"users"}))

    def render_collections(self, collections) -> None:
        if "users" not in collections:
            return
        users = self.storefront.state.users
        table = self.query_one(DataTable)
        table.clear()
        for user in users:
            table.add_row(user.name, user.email, ROLE_TITLES.get(user.role, user.role))

        counts = Counter(u.role for u in users)
        summary = ", ".join(
            f"{counts[role]} {ROLE_TITLES[role].lower()}" for role in ROLE_TITLES if counts[role]
        )
        self.query_one("#md-user-summary", Markdown).update(
            f"### {len(users)} registered users\n\n{summary}"
        )

    @on(Button.Pressed, "#btn-refresh")
    @work(exclusive=True)
    async def handle_refresh(self) -> None:
        await self.storefront.attempt(self.storefront.refresh_users)
