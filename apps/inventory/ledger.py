"""
Stock ledger accessor.

The ledger is the authoritative per-location quantity store. Business logic
talks to it through the StockLedger interface so it can be replaced by a
fake in tests; DatabaseStockLedger is the ORM-backed implementation.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from django.db import IntegrityError, transaction
from django.db.models import F, Sum

from apps.core.exceptions import WouldUnderflowError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MaterialMeta:
    """Catalogue facts the return workflow needs about a material."""
    material_id: int
    name: str
    active: bool
    returnable: bool
    unit_price: Optional[Decimal] = None


@dataclass(frozen=True)
class BalanceSnapshot:
    """Quantity of one (material, location) pair at a given version.

    Version 0 means no balance row exists yet.
    """
    material_id: int
    location_id: int
    quantity: int
    version: int


class StockLedger:
    """Interface of the stock ledger accessor."""

    def get_balance(self, material_id, location_id=None) -> int:
        """Quantity at a location, or across all locations when omitted."""
        raise NotImplementedError

    def get_snapshot(self, material_id, location_id) -> BalanceSnapshot:
        raise NotImplementedError

    def get_material_meta(self, material_id) -> Optional[MaterialMeta]:
        """Return None when the material does not exist."""
        raise NotImplementedError

    def set_balance(self, material_id, location_id, new_quantity, expected_version) -> bool:
        """
        Compare-and-swap the absolute quantity of one pair.
        Returns False when the stored version no longer matches.
        """
        raise NotImplementedError

    def record_movement(self, material_id, location_id, movement_type, quantity, balance,
                        reference_type='', reference_id=None, note='', user=None):
        raise NotImplementedError


class DatabaseStockLedger(StockLedger):
    """StockLedger backed by StockBalance rows."""

    def get_balance(self, material_id, location_id=None) -> int:
        from .models import StockBalance

        queryset = StockBalance.objects.filter(material_id=material_id)
        if location_id is not None:
            balance = queryset.filter(location_id=location_id).values_list('quantity', flat=True).first()
            return balance or 0
        return queryset.aggregate(total=Sum('quantity'))['total'] or 0

    def get_snapshot(self, material_id, location_id) -> BalanceSnapshot:
        from .models import StockBalance

        row = StockBalance.objects.filter(
            material_id=material_id,
            location_id=location_id
        ).values('quantity', 'version').first()

        if row is None:
            return BalanceSnapshot(material_id, location_id, 0, 0)
        return BalanceSnapshot(material_id, location_id, row['quantity'], row['version'])

    def get_material_meta(self, material_id) -> Optional[MaterialMeta]:
        from apps.materials.models import Material

        try:
            material = Material.objects.get(pk=material_id)
        except (Material.DoesNotExist, ValueError, TypeError):
            return None

        return MaterialMeta(
            material_id=material.id,
            name=material.name,
            active=material.is_active,
            returnable=material.allow_returns,
            unit_price=material.unit_price,
        )

    def set_balance(self, material_id, location_id, new_quantity, expected_version) -> bool:
        from .models import StockBalance

        if new_quantity < 0:
            current = self.get_balance(material_id, location_id)
            raise WouldUnderflowError(material_id, location_id, current, new_quantity - current)

        if expected_version == 0:
            try:
                with transaction.atomic():
                    StockBalance.objects.create(
                        material_id=material_id,
                        location_id=location_id,
                        quantity=new_quantity,
                        version=1
                    )
            except IntegrityError:
                logger.warning(
                    f"Stock balance for material {material_id} at location {location_id} "
                    f"was created concurrently"
                )
                return False
        else:
            updated = StockBalance.objects.filter(
                material_id=material_id,
                location_id=location_id,
                version=expected_version
            ).update(quantity=new_quantity, version=F('version') + 1)
            if updated != 1:
                return False

        self._refresh_material_total(material_id)
        return True

    def record_movement(self, material_id, location_id, movement_type, quantity, balance,
                        reference_type='', reference_id=None, note='', user=None):
        from .models import InventoryMovement

        return InventoryMovement.objects.create(
            material_id=material_id,
            location_id=location_id,
            movement_type=movement_type,
            quantity=quantity,
            balance=balance,
            reference_type=reference_type,
            reference_id=reference_id,
            note=note,
            created_by=user
        )

    def _refresh_material_total(self, material_id):
        from apps.materials.models import Material

        Material.objects.filter(pk=material_id).update(
            current_stock=self.get_balance(material_id)
        )


def get_default_ledger() -> StockLedger:
    return DatabaseStockLedger()
