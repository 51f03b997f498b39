"""
Validated request structs for the storefront gateway.

Each struct is a frozen dataclass built with ``from_payload(dict)``.  A
payload with unknown keys, missing required keys, or values of the wrong
shape is rejected as a whole with ``RequestValidationError`` listing every
problem, before any kernel code runs.  Range checks that belong to the
domain (e.g. quantity > 0) are left to the kernel so they surface as
``InvalidQuantityError``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, ClassVar
from uuid import UUID

from storefront_kernel.exceptions import RequestValidationError
from storefront_kernel.models.inventory import InventoryTxType
from storefront_kernel.models.order import OrderStatus


class _Invalid(ValueError):
    """A single field failed to parse."""


def _text(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise _Invalid("must be a non-empty string")
    return value.strip()


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise _Invalid("must be a string")
    return value


def _uuid(value: Any) -> UUID:
    if isinstance(value, UUID):
        return value
    if not isinstance(value, str):
        raise _Invalid("must be a UUID string")
    try:
        return UUID(value)
    except ValueError:
        raise _Invalid("must be a UUID string") from None


def _integer(value: Any) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise _Invalid("must be an integer")
    return value


def _address(value: Any) -> str | dict:
    if isinstance(value, str) and value.strip():
        return value.strip()
    if isinstance(value, dict) and value:
        return dict(value)
    raise _Invalid("must be a non-empty string or mapping")


def _enum(enum_cls) -> Callable[[Any], Any]:
    def parse(value: Any):
        try:
            return enum_cls(value)
        except ValueError:
            allowed = ", ".join(member.value for member in enum_cls)
            raise _Invalid(f"must be one of: {allowed}") from None

    return parse


class RequestStruct:
    """
    Base for request structs.

    Subclasses declare ``_FIELDS``: field name -> (parser, required).
    Optional fields missing from the payload keep the dataclass default.
    """

    _FIELDS: ClassVar[dict[str, tuple[Callable[[Any], Any], bool]]] = {}

    @classmethod
    def from_payload(cls, payload: Any):
        name = cls.__name__
        if not isinstance(payload, dict):
            raise RequestValidationError(
                name, [{"field": None, "error": "body must be an object"}]
            )

        errors: list[dict] = []
        values: dict[str, Any] = {}

        for key in sorted(set(payload) - set(cls._FIELDS)):
            errors.append({"field": key, "error": "unknown field"})

        for field_name, (parser, required) in cls._FIELDS.items():
            if field_name not in payload:
                if required:
                    errors.append({"field": field_name, "error": "missing"})
                continue
            try:
                values[field_name] = parser(payload[field_name])
            except _Invalid as exc:
                errors.append({"field": field_name, "error": str(exc)})

        if errors:
            raise RequestValidationError(name, errors)
        return cls(**values)


@dataclass(frozen=True)
class AddToCartRequest(RequestStruct):
    customer_id: str
    sku_id: UUID
    quantity: int

    _FIELDS: ClassVar = {
        "customer_id": (_text, True),
        "sku_id": (_uuid, True),
        "quantity": (_integer, True),
    }


@dataclass(frozen=True)
class UpdateCartLineRequest(RequestStruct):
    quantity: int

    _FIELDS: ClassVar = {
        "quantity": (_integer, True),
    }


@dataclass(frozen=True)
class PlaceOrderRequest(RequestStruct):
    customer_id: str
    shipping_address: str | dict

    _FIELDS: ClassVar = {
        "customer_id": (_text, True),
        "shipping_address": (_address, True),
    }


@dataclass(frozen=True)
class ChangeOrderStatusRequest(RequestStruct):
    status: OrderStatus
    actor_id: str
    reason: str | None = None

    _FIELDS: ClassVar = {
        "status": (_enum(OrderStatus), True),
        "actor_id": (_text, True),
        "reason": (_optional_text, False),
    }


@dataclass(frozen=True)
class RecordInventoryTransactionRequest(RequestStruct):
    """
    Manual stock movement booked by staff (restock, export, correction).

    ``tx_type`` may be omitted; the movement is then booked as an
    ADJUSTMENT, which accepts a delta of either sign.
    """

    sku_id: UUID
    delta: int
    actor_id: str
    tx_type: InventoryTxType = InventoryTxType.ADJUSTMENT
    reason: str = ""

    _FIELDS: ClassVar = {
        "sku_id": (_uuid, True),
        "delta": (_integer, True),
        "tx_type": (_enum(InventoryTxType), False),
        "actor_id": (_text, True),
        "reason": (_optional_text, False),
    }


@dataclass(frozen=True)
class SetStockLevelRequest(RequestStruct):
    quantity: int
    actor_id: str
    reason: str | None = None

    _FIELDS: ClassVar = {
        "quantity": (_integer, True),
        "actor_id": (_text, True),
        "reason": (_optional_text, False),
    }
