"""
Inventory services.
"""
import logging
from dataclasses import dataclass

from django.conf import settings
from django.db import transaction

from apps.core.exceptions import (
    ConcurrentModificationError,
    InsufficientStockError,
    WouldUnderflowError,
)
from .ledger import get_default_ledger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StockChange:
    """A signed quantity adjustment at one location."""
    location_id: int
    signed_quantity: int
    movement_type: str


class _StaleBalance(Exception):
    """A balance changed between read and compare-and-swap."""


def project_balances(material_id, balances, changes):
    """
    Resulting quantity per touched location.
    `balances` maps location id to current quantity; missing means 0.
    Raises WouldUnderflowError if any result would be negative.
    """
    projected = {}
    for change in changes:
        current = projected.get(change.location_id, balances.get(change.location_id, 0))
        projected[change.location_id] = current + change.signed_quantity

    for change in changes:
        if projected[change.location_id] < 0:
            raise WouldUnderflowError(
                material_id,
                change.location_id,
                balances.get(change.location_id, 0),
                change.signed_quantity
            )

    return projected


class InventoryService:
    """Inventory business logic service."""

    @staticmethod
    def apply_changes(
        material_id,
        changes,
        reference_type='',
        reference_id=None,
        note='',
        user=None,
        ledger=None,
        retries=None
    ):
        """
        Apply signed changes for one material atomically.
        Either every change is written (with a movement log row each) or
        none is. Each write is a compare-and-swap on the balance version;
        a lost race re-reads and retries.
        """
        ledger = ledger or get_default_ledger()
        retries = retries or getattr(settings, 'RETURNS_LEDGER_WRITE_RETRIES', 3)
        location_ids = list(dict.fromkeys(change.location_id for change in changes))

        for attempt in range(retries):
            try:
                with transaction.atomic():
                    snapshots = {
                        location_id: ledger.get_snapshot(material_id, location_id)
                        for location_id in location_ids
                    }
                    projected = project_balances(
                        material_id,
                        {location_id: snap.quantity for location_id, snap in snapshots.items()},
                        changes
                    )

                    for location_id in location_ids:
                        written = ledger.set_balance(
                            material_id,
                            location_id,
                            projected[location_id],
                            expected_version=snapshots[location_id].version
                        )
                        if not written:
                            raise _StaleBalance(location_id)

                    running = {location_id: snap.quantity for location_id, snap in snapshots.items()}
                    for change in changes:
                        running[change.location_id] += change.signed_quantity
                        ledger.record_movement(
                            material_id=material_id,
                            location_id=change.location_id,
                            movement_type=change.movement_type,
                            quantity=change.signed_quantity,
                            balance=running[change.location_id],
                            reference_type=reference_type,
                            reference_id=reference_id,
                            note=note,
                            user=user
                        )

                    return projected
            except _StaleBalance as e:
                logger.warning(
                    f"Stale balance for material {material_id} at location {e.args[0]}, "
                    f"attempt {attempt + 1}/{retries}"
                )

        raise ConcurrentModificationError(f'物料 {material_id} 庫存更新衝突，請稍後再試')

    @staticmethod
    def adjust_stock(
        location_id,
        material_id,
        quantity,
        movement_type,
        reference_type='',
        reference_id=None,
        note='',
        user=None,
        ledger=None
    ):
        """
        Adjust stock at one location and create movement log.
        Positive quantity = increase, negative = decrease.
        Returns the new balance.
        """
        ledger = ledger or get_default_ledger()
        try:
            projected = InventoryService.apply_changes(
                material_id,
                [StockChange(location_id, quantity, movement_type)],
                reference_type=reference_type,
                reference_id=reference_id,
                note=note,
                user=user,
                ledger=ledger
            )
        except WouldUnderflowError as e:
            meta = ledger.get_material_meta(material_id)
            raise InsufficientStockError(
                material_name=meta.name if meta else material_id,
                required=abs(quantity),
                available=e.current
            )

        return projected[location_id]
