"""
Utility functions for the application.
"""
from datetime import date, datetime, time
from decimal import Decimal, ROUND_HALF_UP

from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime


def to_decimal(value, default='0'):
    """Convert int/float/str to Decimal without float artefacts."""
    if value is None or value == '':
        return Decimal(default)
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_currency(amount):
    """
    Round currency amount to two decimal places.
    """
    return to_decimal(amount).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)


def calculate_subtotal(quantity, unit_price):
    """
    Calculate subtotal: quantity * unit_price
    """
    return round_currency(to_decimal(quantity) * to_decimal(unit_price))


def parse_date_boundary(value, end_of_day=False):
    """
    Parse a date, datetime or string into an aware datetime.
    Plain dates expand to the start (or end) of that day.
    Returns None for empty or unparseable input.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        day = value if isinstance(value, date) else parse_date(str(value))
        if day is not None:
            parsed = datetime.combine(day, time.max if end_of_day else time.min)
        else:
            parsed = parse_datetime(str(value))
            if parsed is None:
                return None
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed
