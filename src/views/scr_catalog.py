from typing import Optional, Tuple

from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.validation import Number
from textual.widgets import Button, DataTable, Input, Label

from core.errors import RemoteError, StorefrontError
from core.orders import new_idempotency_key
from gateway.models import Product
from utils.pure import format_money
from views.base_screen import BaseScreen
from views.modal_product_form import ProductFormModal


class CatalogScreen(BaseScreen):
    """
    Public product catalog. Customers and admins can buy from it,
    sellers and admins can list new products.
    """

    ROUTE = "catalog"

    BINDINGS = [
        Binding("b", "buy", "Buy Selected", show=True),
        Binding("r", "refresh", "Refresh", show=True),
    ]

    def __init__(self) -> None:
        super().__init__()
        # (product_id, quantity, idempotency key) of the last attempt that failed
        self._retry: Optional[Tuple[str, str, str]] = None

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield DataTable(id="table-products")
            with Horizontal(id="hort-buy"):
                yield Label("Quantity", id="label-qty")
                yield Input(
                    "1",
                    id="input-qty",
                    type="integer",
                    validators=[Number(minimum=1)],
                )
                yield Button("Buy", id="btn-buy", variant="primary")
                yield Button("Retry last order", id="btn-retry", variant="warning")
            with Horizontal(id="hort-catalog-controls"):
                yield Button("Refresh", id="btn-refresh")
                yield Button("List a product", id="btn-new-product", variant="success")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_column("Name", key="name")
        table.add_column("Price", key="price")
        table.add_column("Stock", key="stock")
        self.render_collections(frozenset({"products"}))

    def render_collections(self, collections) -> None:
        if "products" in collections:
            self._render_products()
        self._refresh_buttons()

    def _render_products(self) -> None:
        table = self.query_one(DataTable)
        selected = self._selected_product()
        table.clear()
        for product in self.storefront.state.products:
            stock = str(product.stock) if product.stock > 0 else "out of stock"
            table.add_row(product.name, format_money(product.price), stock, key=product.id)
        if selected is not None and self.storefront.state.find_product(selected.id):
            table.move_cursor(row=table.get_row_index(selected.id))

    def _selected_product(self) -> Optional[Product]:
        table = self.query_one(DataTable)
        if table.row_count == 0:
            return None
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        return self.storefront.state.find_product(row_key.value)

    def _refresh_buttons(self) -> None:
        can_buy = self.storefront.can("purchase")
        product = self._selected_product()
        btn_buy = self.query_one("#btn-buy", Button)
        btn_buy.display = can_buy
        self.query_one("#input-qty").display = can_buy
        self.query_one("#label-qty").display = can_buy
        btn_buy.disabled = product is None or product.stock <= 0
        self.query_one("#btn-retry", Button).display = can_buy and self._retry is not None
        self.query_one("#btn-new-product").display = self.storefront.can("create_product")

    @on(DataTable.RowHighlighted)
    def handle_row_highlight(self) -> None:
        self._refresh_buttons()

    def action_buy(self) -> None:
        self.handle_buy()

    def action_refresh(self) -> None:
        self.handle_refresh()

    @on(Button.Pressed, "#btn-refresh")
    @work(exclusive=True, group="catalog-refresh")
    async def handle_refresh(self) -> None:
        await self.storefront.refresh_products()

    @on(Button.Pressed, "#btn-buy")
    @work(group="orders")
    async def handle_buy(self) -> None:
        product = self._selected_product()
        if product is None:
            self.app.notify_user("warning", "Select a product first.")
            return
        quantity = self.query_one("#input-qty", Input).value.strip() or "1"
        # a new press is a new attempt, so it always gets a new key
        await self._submit(product.id, quantity, new_idempotency_key())

    @on(Button.Pressed, "#btn-retry")
    @work(group="orders")
    async def handle_retry(self) -> None:
        if self._retry is None:
            return
        product_id, quantity, key = self._retry
        await self._submit(product_id, quantity, key)

    async def _submit(self, product_id: str, quantity, key: str) -> None:
        try:
            await self.storefront.place_order(product_id, quantity, key)
        except RemoteError as exc:
            # the gateway may have processed it; retrying reuses the same key
            self._retry = (product_id, quantity, key)
            self.storefront.report_error(exc)
        except StorefrontError as exc:
            self.storefront.report_error(exc)
        else:
            self._retry = None
        self._refresh_buttons()

    @on(Button.Pressed, "#btn-new-product")
    def handle_new_product(self) -> None:
        self.app.push_screen(ProductFormModal())
