"""
Return summary aggregation.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional

from apps.core.utils import calculate_subtotal, round_currency
from .models import ReturnCategory, ReturnStatus


@dataclass
class MaterialReturnTotal:
    material_id: int
    material_name: str
    total_quantity: int = 0
    total_value: Decimal = Decimal('0.00')

    def to_dict(self):
        return {
            'material_id': self.material_id,
            'material_name': self.material_name,
            'total_quantity': self.total_quantity,
            'total_value': str(self.total_value),
        }


@dataclass
class ReturnSummary:
    total_returns: int
    total_value: Decimal
    by_category: Dict[str, int]
    by_status: Dict[str, int]
    top_materials: List[MaterialReturnTotal] = field(default_factory=list)
    date_from: Optional[object] = None
    date_to: Optional[object] = None

    def to_dict(self):
        return {
            'total_returns': self.total_returns,
            'total_value': str(self.total_value),
            'by_category': dict(self.by_category),
            'by_status': dict(self.by_status),
            'top_materials': [item.to_dict() for item in self.top_materials],
            'date_from': self.date_from.isoformat() if self.date_from else None,
            'date_to': self.date_to.isoformat() if self.date_to else None,
        }


def _lines_of(return_request):
    lines = return_request.lines
    return lines.all() if hasattr(lines, 'all') else lines


def summarize_returns(returns, date_from=None, date_to=None, top_n=10):
    """
    Aggregate counts and values over return requests.
    Requests outside [date_from, date_to] by requested_at are ignored.
    Every category and status key is present, zero when unused.
    """
    by_category = {category.value: 0 for category in ReturnCategory}
    by_status = {status.value: 0 for status in ReturnStatus}
    materials = {}
    total_returns = 0
    total_value = Decimal('0')

    for return_request in returns:
        if date_from and return_request.requested_at < date_from:
            continue
        if date_to and return_request.requested_at > date_to:
            continue

        total_returns += 1
        total_value += return_request.total_value or Decimal('0')
        by_category[return_request.category] = by_category.get(return_request.category, 0) + 1
        by_status[return_request.status] = by_status.get(return_request.status, 0) + 1

        for line in _lines_of(return_request):
            entry = materials.get(line.material_id)
            if entry is None:
                entry = MaterialReturnTotal(
                    material_id=line.material_id,
                    material_name=line.material.name
                )
                materials[line.material_id] = entry
            entry.total_quantity += line.quantity
            entry.total_value += calculate_subtotal(line.quantity, line.unit_price)

    top_materials = sorted(
        materials.values(),
        key=lambda item: (item.total_quantity, item.total_value),
        reverse=True
    )[:top_n]

    return ReturnSummary(
        total_returns=total_returns,
        total_value=round_currency(total_value),
        by_category=by_category,
        by_status=by_status,
        top_materials=top_materials,
        date_from=date_from,
        date_to=date_to,
    )
