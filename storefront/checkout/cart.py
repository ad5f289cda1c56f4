"""Customer shopping cart with totals that are always derived from its lines."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from .storage import CartStorage

_LOGGER = logging.getLogger(__name__)

DEFAULT_CART_KEY = "onesalt-cart"
PLACEHOLDER_IMAGE = "/placeholder-tshirt.jpg"


def line_id(product_id: str, color: str, size: str) -> str:
    return f"{product_id}-{color}-{size}"


class CatalogProduct(BaseModel):
    """The product fields the cart needs, as served by the catalog API."""

    id: str
    name: str
    slug: str | None = None
    price: Decimal = Field(ge=Decimal("0"))
    images: list[str] = Field(default_factory=list)
    colors: list[str] = Field(default_factory=list)
    sizes: list[str] = Field(default_factory=list)

    model_config = ConfigDict(coerce_numbers_to_str=True, extra="ignore")


class CartLine(BaseModel):
    id: str
    product_id: str = Field(alias="productId")
    name: str
    image: str = PLACEHOLDER_IMAGE
    color: str
    size: str
    unit_price: Decimal = Field(
        ge=Decimal("0"),
        validation_alias=AliasChoices("unitPrice", "price"),
        serialization_alias="unitPrice",
    )
    quantity: int = Field(ge=1)
    slug: str | None = None

    model_config = ConfigDict(frozen=True, populate_by_name=True, coerce_numbers_to_str=True)

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class CartState(BaseModel):
    items: tuple[CartLine, ...] = ()
    total_items: int = Field(default=0, alias="totalItems")
    total_price: Decimal = Field(default=Decimal("0"), alias="totalPrice")

    model_config = ConfigDict(frozen=True, populate_by_name=True)


_LINES = TypeAdapter(tuple[CartLine, ...])


def with_totals(items: Iterable[CartLine]) -> CartState:
    """Build a state whose totals are recomputed from ``items``."""

    lines = tuple(items)
    return CartState(
        items=lines,
        total_items=sum(line.quantity for line in lines),
        total_price=sum((line.line_total for line in lines), Decimal("0")),
    )


def merge_lines(items: Iterable[CartLine]) -> list[CartLine]:
    """Re-key lines by variant and fold duplicates into the first occurrence."""

    merged: dict[str, CartLine] = {}
    for line in items:
        key = line_id(line.product_id, line.color, line.size)
        current = merged.get(key)
        if current is not None:
            merged[key] = current.model_copy(update={"quantity": current.quantity + line.quantity})
        elif line.id != key:
            merged[key] = line.model_copy(update={"id": key})
        else:
            merged[key] = line
    return list(merged.values())


@dataclass(frozen=True)
class CartError:
    field: str
    message: str


class CartStore:
    """Shopping cart persisted write-through to a :class:`CartStorage`.

    Every mutation rebuilds the state from the full line sequence and is saved
    before the call returns. Unknown line ids are ignored.
    """

    def __init__(self, storage: CartStorage, *, key: str = DEFAULT_CART_KEY) -> None:
        self.storage = storage
        self.key = key
        self._state = CartState()
        self._restore()

    @property
    def state(self) -> CartState:
        return self._state

    @property
    def items(self) -> tuple[CartLine, ...]:
        return self._state.items

    @property
    def total_items(self) -> int:
        return self._state.total_items

    @property
    def total_price(self) -> Decimal:
        return self._state.total_price

    def add_item(
        self,
        product: CatalogProduct,
        *,
        color: str,
        size: str,
        quantity: int = 1,
    ) -> CartError | None:
        if not color or not size:
            return CartError("options", "Please select color and size")
        if quantity < 1:
            return CartError("quantity", "Quantity must be at least 1")

        key = line_id(product.id, color, size)
        items = list(self._state.items)
        index = self._index(key)
        if index is None:
            items.append(
                CartLine(
                    id=key,
                    product_id=product.id,
                    name=product.name,
                    image=product.images[0] if product.images else PLACEHOLDER_IMAGE,
                    color=color,
                    size=size,
                    unit_price=product.price,
                    quantity=quantity,
                    slug=product.slug,
                )
            )
        else:
            current = items[index]
            items[index] = current.model_copy(update={"quantity": current.quantity + quantity})
        self._commit(items)
        _LOGGER.debug("Added %d x %s to cart", quantity, key)
        return None

    def remove_item(self, item_id: str) -> None:
        if self._index(item_id) is None:
            return
        self._commit(line for line in self._state.items if line.id != item_id)

    def increment_quantity(self, item_id: str) -> None:
        self._change_quantity(item_id, 1)

    def decrement_quantity(self, item_id: str) -> None:
        self._change_quantity(item_id, -1)

    def clear(self) -> None:
        self._commit(())

    def load(self, snapshot: CartState | dict[str, Any]) -> None:
        """Replace the cart with ``snapshot``; its stored totals and line ids are ignored."""

        if isinstance(snapshot, CartState):
            items: Iterable[CartLine] = snapshot.items
        else:
            items = _LINES.validate_python(snapshot.get("items") or ())
        self._commit(merge_lines(items))

    def get_quantity(self, product_id: str, color: str, size: str) -> int:
        index = self._index(line_id(product_id, color, size))
        return 0 if index is None else self._state.items[index].quantity

    def is_in_cart(self, product_id: str, color: str, size: str) -> bool:
        return self.get_quantity(product_id, color, size) > 0

    def to_json(self) -> str:
        return self._state.model_dump_json(by_alias=True)

    def _change_quantity(self, item_id: str, delta: int) -> None:
        index = self._index(item_id)
        if index is None:
            return
        line = self._state.items[index]
        if line.quantity + delta < 1:
            return
        items = list(self._state.items)
        items[index] = line.model_copy(update={"quantity": line.quantity + delta})
        self._commit(items)

    def _index(self, item_id: str) -> int | None:
        return next((i for i, line in enumerate(self._state.items) if line.id == item_id), None)

    def _commit(self, items: Iterable[CartLine]) -> None:
        self._state = with_totals(items)
        self.storage.set(self.key, self.to_json())

    def _restore(self) -> None:
        raw = self.storage.get(self.key)
        if raw is None:
            return
        try:
            self._state = with_totals(merge_lines(_LINES.validate_python(_items_of(raw))))
        except ValidationError as exc:
            _LOGGER.warning("Discarding unreadable cart snapshot under %r: %s", self.key, exc)
            self._commit(())


def _items_of(raw: str) -> Any:
    snapshot = TypeAdapter(dict[str, Any]).validate_json(raw)
    return snapshot.get("items") or ()
