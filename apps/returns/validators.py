"""
Return line validation.

Each requested line is checked against the material catalogue and the
current stock ledger. Validation has no side effects: it only reads.
"""
import logging
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import List, Optional

from django.db import DatabaseError

from apps.inventory.ledger import get_default_ledger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LineRequest:
    """A return line as requested by the caller."""
    material_id: int
    quantity: int
    unit_price: Optional[Decimal] = None
    detail_reason: str = ''
    source_location_id: Optional[int] = None
    destination_location_id: Optional[int] = None

    @classmethod
    def from_dict(cls, data):
        return cls(
            material_id=data['material_id'],
            quantity=data['quantity'],
            unit_price=data.get('unit_price'),
            detail_reason=data.get('detail_reason') or '',
            source_location_id=data.get('source_location_id'),
            destination_location_id=data.get('destination_location_id'),
        )

    @classmethod
    def from_line(cls, line):
        """Build from a persisted ReturnLine."""
        return cls(
            material_id=line.material_id,
            quantity=line.quantity,
            unit_price=line.unit_price,
            detail_reason=line.detail_reason,
            source_location_id=line.source_location_id,
            destination_location_id=line.destination_location_id,
        )


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one line."""
    material_id: int
    requested_quantity: int
    available_quantity: int = 0
    is_valid: bool = True
    rejection_reason: Optional[str] = None
    error_code: Optional[str] = None
    restrictions: List[str] = field(default_factory=list)

    @classmethod
    def failure(cls, line, error_code, reason, available=0):
        return cls(
            material_id=line.material_id,
            requested_quantity=line.quantity,
            available_quantity=available,
            is_valid=False,
            rejection_reason=reason,
            error_code=error_code,
            restrictions=[reason],
        )

    def invalidated(self, error_code, reason):
        """Copy of this result marked invalid for an additional reason."""
        restrictions = self.restrictions + [reason]
        return replace(
            self,
            is_valid=False,
            error_code=self.error_code or error_code,
            rejection_reason='；'.join(restrictions),
            restrictions=restrictions,
        )

    def to_dict(self):
        return {
            'material_id': self.material_id,
            'requested_quantity': self.requested_quantity,
            'available_quantity': self.available_quantity,
            'is_valid': self.is_valid,
            'rejection_reason': self.rejection_reason,
            'error_code': self.error_code,
            'restrictions': list(self.restrictions),
        }


class ReturnValidator:
    """Validates requested return lines against catalogue and stock."""

    def __init__(self, ledger=None):
        self.ledger = ledger or get_default_ledger()

    def validate(self, lines):
        """Validate every line. One result per line, in input order."""
        return [self.validate_line(line) for line in lines]

    def validate_line(self, line):
        try:
            meta = self.ledger.get_material_meta(line.material_id)
            if meta is None:
                return ValidationResult.failure(
                    line, 'MATERIAL_NOT_FOUND', f'找不到物料 {line.material_id}'
                )
            if not meta.active:
                return ValidationResult.failure(
                    line, 'MATERIAL_INACTIVE', f'物料 {meta.name} 已停用'
                )
            if not meta.returnable:
                return ValidationResult.failure(
                    line, 'RETURNS_NOT_ALLOWED', f'物料 {meta.name} 不允許退貨'
                )

            available = self.ledger.get_balance(line.material_id, line.source_location_id)
        except DatabaseError as e:
            logger.error(f"Failed to validate material {line.material_id}: {e}")
            return ValidationResult.failure(
                line, 'VALIDATION_ERROR', f'物料 {line.material_id} 驗證失敗，請稍後再試'
            )

        restrictions = []
        error_code = None
        if line.quantity <= 0:
            restrictions.append('退貨數量必須大於零')
            error_code = 'INVALID_QUANTITY'
        if line.quantity > available:
            restrictions.append(
                f'物料 {meta.name} 庫存不足，需要 {line.quantity}，可用 {available}'
            )
            error_code = error_code or 'INSUFFICIENT_STOCK'

        return ValidationResult(
            material_id=line.material_id,
            requested_quantity=line.quantity,
            available_quantity=available,
            is_valid=not restrictions,
            rejection_reason='；'.join(restrictions) if restrictions else None,
            error_code=error_code,
            restrictions=restrictions,
        )
