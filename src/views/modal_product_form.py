from typing import Optional

from textual import events, on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.validation import Number
from textual.widgets import Button, Input, Label

from gateway.models import Product


class ProductFormModal(ModalScreen[Optional[Product]]):
    """
    Form for listing a new product.
    Returns the created product, or None if the user backed out.
    """

    def compose(self) -> ComposeResult:
        with Vertical(id="div-product-form"):
            yield Label("List a new product", id="label-form-title")
            yield Label("Name")
            yield Input(placeholder="Widget", id="input-prod-name")
            with Horizontal(id="hort-prod-numbers"):
                with Vertical():
                    yield Label("Price ($)")
                    yield Input(
                        placeholder="9.99",
                        id="input-prod-price",
                        type="number",
                        validators=[Number(minimum=0.0)],
                    )
                with Vertical():
                    yield Label("Stock")
                    yield Input(
                        placeholder="5",
                        id="input-prod-stock",
                        type="integer",
                        validators=[Number(minimum=0)],
                    )
            with Horizontal(id="hort-form-btns"):
                yield Button("Go Back", id="btn-quit")
                yield Button("List product", id="btn-submit", variant="primary")

    def on_mount(self) -> None:
        self.query_one("#input-prod-name").focus()

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(None)

    @on(Button.Pressed, "#btn-submit")
    @work(exclusive=True)
    async def handle_submit(self) -> None:
        name_input = self.query_one("#input-prod-name", Input)
        if not name_input.value.strip():
            name_input.focus()
            name_input.add_class("-invalid")

        storefront = self.app.storefront
        product = await storefront.attempt(
            storefront.create_product,
            name_input.value,
            self.query_one("#input-prod-price", Input).value or "0",
            self.query_one("#input-prod-stock", Input).value or "0",
        )
        if product is not None:
            self.dismiss(product)

    @on(Button.Pressed, "#btn-quit")
    def handle_quit(self) -> None:
        self.dismiss(None)
