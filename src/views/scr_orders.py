from typing import List, Optional

from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.widgets import Button, DataTable, Label, MarkdownViewer

from gateway.models import Order, SagaStep
from utils.pure import format_money, format_timestamp, generate_markdown_table
from views.base_screen import BaseScreen
from views.modal_dialog import DialogModal


class OrdersScreen(BaseScreen):
    """
    Orders visible to the session: a customer's own, or every order for
    an admin. The detail pane shows the fulfilment steps of the
    highlighted order.
    """

    ROUTE = "orders"

    BINDINGS = [
        Binding("c", "cancel_order", "Cancel Order", show=True),
        Binding("r", "refresh", "Refresh", show=True),
    ]

    def __init__(self) -> None:
        super().__init__()
        self._highlighted: Optional[str] = None

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Vertical():
            yield MarkdownViewer(id="md-order-detail", show_table_of_contents=False)
            yield DataTable(id="table-orders")
        with Horizontal(id="hort-table-control"):
            yield Button("Refresh", id="btn-refresh")
            yield Label("", id="label-order-summary")
            yield Button("Cancel order", id="btn-cancel", variant="error")

    def on_mount(self) -> None:
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.zebra_stripes = True
        table.add_columns("Product", "Qty", "Unit", "Total", "Status", "Created")
        self.render_collections(frozenset({"orders"}))

    def render_collections(self, collections) -> None:
        if "orders" not in collections and "products" not in collections:
            return
        state = self.storefront.state
        table = self.query_one(DataTable)
        table.clear()
        for order in state.orders:
            product = state.find_product(order.product_id)
            table.add_row(
                product.name if product else order.product_id,
                order.quantity,
                format_money(order.unit_price),
                format_money(order.total_amount),
                order.status,
                format_timestamp(order.created_at),
                key=order.id,
            )
        if self._highlighted and state.find_order(self._highlighted):
            table.move_cursor(row=table.get_row_index(self._highlighted))

        total = sum(o.total_amount for o in state.orders)
        self.query_one("#label-order-summary", Label).update(
            f"{len(state.orders)} orders, {format_money(total)}"
        )
        self._refresh_detail()

    def _selected_order(self) -> Optional[Order]:
        table = self.query_one(DataTable)
        if table.row_count == 0:
            return None
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        return self.storefront.state.find_order(row_key.value)

    @on(DataTable.RowHighlighted)
    def handle_row_highlight(self) -> None:
        self._refresh_detail()

    def _refresh_detail(self) -> None:
        order = self._selected_order()
        self._highlighted = order.id if order else None
        btn_cancel = self.query_one("#btn-cancel", Button)
        btn_cancel.disabled = order is None or not self.storefront.can_cancel(order)
        self._load_and_render_detail(order)

    @work(exclusive=True, group="order-detail")
    async def _load_and_render_detail(self, order: Optional[Order]) -> None:
        steps: List[SagaStep] = []
        if order is not None:
            steps = await self.storefront.attempt(self.storefront.order_saga, order.id) or []
        self._render_detail(order, steps)

    def _render_detail(self, order: Optional[Order], steps: List[SagaStep]) -> None:
        viewer = self.query_one("#md-order-detail", MarkdownViewer)
        if order is None:
            viewer.document.update("### Select an order to view its details.")
            return

        product = self.storefront.state.find_product(order.product_id)
        rows = [
            ["Product", product.name if product else order.product_id],
            ["Quantity", order.quantity],
            ["Unit price", format_money(order.unit_price)],
            ["Total", format_money(order.total_amount)],
            ["Status", order.status],
            ["Created", format_timestamp(order.created_at)],
        ]
        if order.failure_reason:
            rows.append(["Failure", order.failure_reason])
        md = f"### Order {order.id}\n\n" + generate_markdown_table(
            ["Field", "Value"], rows, ["l", "l"]
        )
        if steps:
            step_rows = [
                [
                    s.step_name,
                    s.step_status,
                    "yes" if s.compensation else "",
                    s.retry_count,
                    format_timestamp(s.created_at),
                ]
                for s in steps
            ]
            md += "\n\n#### Fulfilment\n\n" + generate_markdown_table(
                ["Step", "Status", "Compensation", "Retries", "At"], step_rows
            )
        viewer.document.update(md)

    def action_refresh(self) -> None:
        self.handle_refresh()

    def action_cancel_order(self) -> None:
        self.handle_cancel()

    @on(Button.Pressed, "#btn-refresh")
    @work(exclusive=True, group="orders-refresh")
    async def handle_refresh(self) -> None:
        await self.storefront.attempt(self.storefront.refresh_orders)

    @on(Button.Pressed, "#btn-cancel")
    @work(group="orders")
    async def handle_cancel(self) -> None:
        order = self._selected_order()
        if order is None:
            return
        if not await self.app.push_screen_wait(
            DialogModal(
                "Cancel this order? This cannot be undone.",
                primary_text="Yes",
                secondary_text="No",
                tone="error",
            )
        ):
            return
        await self.storefront.attempt(self.storefront.cancel_order, order.id)
