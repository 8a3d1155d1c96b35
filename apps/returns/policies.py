"""
Movement policy: which stock locations a return line moves, and in which
direction, depending on the return category.
"""
from apps.core.exceptions import InvalidMovementError
from apps.inventory.services import StockChange, project_balances
from .models import ReturnCategory

MovementPlan = StockChange


class MovementPolicy:
    """Translates return lines into movement plans."""

    def resolve(self, category, line):
        """
        Plans for one line. `line` needs quantity, source_location_id and
        destination_location_id. Raises InvalidMovementError when the line
        cannot be moved for this category.
        """
        category = ReturnCategory(category)
        if category == ReturnCategory.CUSTOMER:
            return self._resolve_customer(line)
        if category == ReturnCategory.SUPPLIER:
            return self._resolve_supplier(line)
        if category == ReturnCategory.INTERNAL:
            return self._resolve_internal(line)
        raise InvalidMovementError(f'不支援的退貨類型 {category}')

    @staticmethod
    def _resolve_customer(line):
        if line.destination_location_id is None:
            raise InvalidMovementError('客戶退貨必須指定目的儲位')
        return [MovementPlan(line.destination_location_id, line.quantity, 'RETURN_IN')]

    @staticmethod
    def _resolve_supplier(line):
        if line.source_location_id is None:
            raise InvalidMovementError('退回供應商必須指定來源儲位')
        return [MovementPlan(line.source_location_id, -line.quantity, 'RETURN_OUT')]

    @staticmethod
    def _resolve_internal(line):
        source = line.source_location_id
        destination = line.destination_location_id

        if source is None and destination is None:
            raise InvalidMovementError('內部退回必須指定來源或目的儲位')
        if source == destination:
            raise InvalidMovementError('來源儲位與目的儲位不可相同')
        if destination is None:
            return [MovementPlan(source, -line.quantity, 'TRANSFER_OUT')]
        if source is None:
            return [MovementPlan(destination, line.quantity, 'TRANSFER_IN')]
        return [
            MovementPlan(source, -line.quantity, 'TRANSFER_OUT'),
            MovementPlan(destination, line.quantity, 'TRANSFER_IN'),
        ]

    @staticmethod
    def apply(plans, balances, material_id=None):
        """
        Resulting quantity per touched location.
        `balances` maps location id to current quantity; missing means 0.
        Raises WouldUnderflowError if any result would be negative.
        """
        return project_balances(material_id, balances, plans)
