"""
Return code generation.

Codes look like RET-CUST-2610-0007: category prefix, two-digit year and
month, then a per-month sequence. Numbers come from a row-locked
ReturnCodeSequence counter, also guarded by a distributed lock so that
processes sharing the cache queue up instead of contending on the row.
"""
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Optional

from django.conf import settings
from django.db import DatabaseError, transaction
from django.utils import timezone

from apps.core.locks import distributed_lock
from .models import ReturnCategory, ReturnCodeSequence, ReturnRequest

logger = logging.getLogger(__name__)

CATEGORY_PREFIXES = {
    ReturnCategory.CUSTOMER: 'RET-CUST',
    ReturnCategory.SUPPLIER: 'RET-SUPP',
    ReturnCategory.INTERNAL: 'RET-INT',
}


@dataclass(frozen=True)
class GeneratedCode:
    code: str
    sequence: Optional[int]
    is_fallback: bool = False


class ReturnCodeGenerator:
    """Issues unique return request codes."""

    def __init__(self, lock_ttl=None):
        self.lock_ttl = lock_ttl or getattr(settings, 'RETURNS_CODE_LOCK_TTL', 5)

    @staticmethod
    def prefix_for(category):
        return CATEGORY_PREFIXES[ReturnCategory(category)]

    def generate(self, category, now=None):
        prefix = self.prefix_for(category)
        period = timezone.localtime(now or timezone.now()).strftime('%y%m')

        try:
            with distributed_lock(f'returns:code:{prefix}:{period}', ttl=self.lock_ttl) as lock_id:
                if lock_id is None:
                    # The row lock below still serialises issuers
                    logger.warning(f"Issuing {prefix}-{period} code without distributed lock")
                number = self._next_number(prefix, period)
        except DatabaseError as e:
            code = self._fallback_code(prefix, period)
            logger.warning(f"Sequence lookup for {prefix}-{period} failed ({e}), using fallback code {code}")
            return GeneratedCode(code=code, sequence=None, is_fallback=True)

        return GeneratedCode(code=f'{prefix}-{period}-{number:04d}', sequence=number)

    def _next_number(self, prefix, period):
        with transaction.atomic():
            sequence, _ = ReturnCodeSequence.objects.select_for_update().get_or_create(
                prefix=prefix,
                period=period
            )
            number = max(sequence.last_number, self._max_existing_number(prefix, period)) + 1
            sequence.last_number = number
            sequence.save(update_fields=['last_number', 'updated_at'])
        return number

    @staticmethod
    def _max_existing_number(prefix, period):
        """Highest numeric suffix already used, ignoring fallback codes."""
        scope = f'{prefix}-{period}-'
        highest = 0
        codes = ReturnRequest.objects.filter(code__startswith=scope).values_list('code', flat=True)
        for code in codes:
            suffix = code[len(scope):]
            if suffix.isdigit():
                highest = max(highest, int(suffix))
        return highest

    @staticmethod
    def _fallback_code(prefix, period):
        millis = int(time.time() * 1000)
        return f'{prefix}-{period}-T{millis}{uuid.uuid4().hex[:4].upper()}'
