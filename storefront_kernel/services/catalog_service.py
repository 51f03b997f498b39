"""
CatalogService -- minimal catalog writes for seeding and tests.

Responsibility:
    Creates products and their variants.  Catalog editing is owned by an
    outside collaborator; this service exists so the kernel can be seeded
    and tested with the data that collaborator would write.

Architecture position:
    Kernel > Services.  Books initial stock through InventoryLedger.

Invariants enforced:
    - A new variant starts at stock 0; its initial stock is applied as a
      RESTOCK delta, so the ledger sums to the stock level from the very
      first row.
"""

from decimal import Decimal

from sqlalchemy.exc import IntegrityError

from storefront_kernel.exceptions import (
    ImmutabilityViolationError,
    InvalidQuantityError,
    SkuReferencedError,
)
from storefront_kernel.logging_config import get_logger
from storefront_kernel.models.catalog import Product, Variant
from storefront_kernel.models.inventory import InventoryTxType
from storefront_kernel.services.base import BaseService
from storefront_kernel.services.inventory_ledger import InventoryLedger

logger = get_logger("services.catalog")

INITIAL_STOCK_REASON = "initial stock"


class CatalogService(BaseService):
    """Creates products and variants."""

    def __init__(self, session, ledger: InventoryLedger):
        super().__init__(session)
        self._ledger = ledger

    def create_product(
        self,
        name: str,
        brand: str = "",
        description: str | None = None,
    ) -> Product:
        product = Product(name=name, brand=brand, description=description)
        self.session.add(product)
        self.session.flush()
        logger.info("product_created", extra={"product_id": str(product.id), "product_name": name})
        return product

    def add_variant(
        self,
        product: Product,
        name: str,
        price: Decimal | str,
        initial_stock: int = 0,
        color: str | None = None,
        capacity: str | None = None,
        image_url: str | None = None,
        actor_id: str = "system",
    ) -> Variant:
        """
        Create a variant and book its initial stock.

        Raises:
            InvalidQuantityError: initial_stock is negative or not an int.
        """
        if not isinstance(initial_stock, int) or isinstance(initial_stock, bool):
            raise InvalidQuantityError(initial_stock, "initial stock must be an integer")
        if initial_stock < 0:
            raise InvalidQuantityError(initial_stock, "initial stock cannot be negative")

        variant = Variant(
            product_id=product.id,
            name=name,
            color=color,
            capacity=capacity,
            image_url=image_url,
            price=Decimal(str(price)),
            stock_quantity=0,
        )
        variant.product = product
        self.session.add(variant)
        self.session.flush()

        if initial_stock > 0:
            self._ledger.apply_delta(
                variant.id,
                initial_stock,
                InventoryTxType.RESTOCK,
                INITIAL_STOCK_REASON,
                actor_id,
            )

        logger.info(
            "variant_created",
            extra={
                "sku_id": str(variant.id),
                "product_id": str(product.id),
                "initial_stock": initial_stock,
            },
        )
        return variant

    def reprice(self, variant: Variant, price: Decimal | str) -> Variant:
        """Change a variant's price.  Existing order snapshots keep theirs."""
        variant.price = Decimal(str(price))
        self.session.flush()
        logger.info(
            "variant_repriced",
            extra={"sku_id": str(variant.id), "price": variant.price},
        )
        return variant

    def delete_variant(self, variant: Variant) -> None:
        """
        Delete a variant that nothing refers to.

        Raises:
            SkuReferencedError: an open order still references it.
            ImmutabilityViolationError: ledger entries, cart lines or closed
                order lines still point at it (foreign keys refuse the
                DELETE).
        """
        variant_id = variant.id
        savepoint = self.session.begin_nested()
        try:
            self.session.delete(variant)
            self.session.flush()
        except SkuReferencedError:
            savepoint.rollback()
            raise
        except IntegrityError:
            savepoint.rollback()
            logger.warning("variant_delete_refused", extra={"sku_id": str(variant_id)})
            raise ImmutabilityViolationError(
                "Variant",
                str(variant_id),
                "variant has ledger, cart or order history",
            ) from None
        savepoint.commit()
        logger.info("variant_deleted", extra={"sku_id": str(variant_id)})
