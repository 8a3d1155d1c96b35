"""
Return workflow services.

A return request moves PENDING -> APPROVED -> PROCESSED, or is REJECTED
either by a reviewer while pending or as the outcome of a processing run in
which no line could be applied. Stock only changes while processing, one
line at a time.
"""
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from django.conf import settings
from django.db import DatabaseError, transaction
from django.db.models import F
from django.utils import timezone

from apps.core.exceptions import (
    BusinessException,
    ConcurrentModificationError,
    InvalidMovementError,
    InvalidTransitionError,
    ReturnInputError,
    ReturnNotFoundError,
    ValidationFailedError,
    WouldUnderflowError,
)
from apps.core.locks import distributed_lock
from apps.core.utils import calculate_subtotal, parse_date_boundary, round_currency
from apps.inventory.ledger import get_default_ledger
from apps.inventory.services import InventoryService
from .models import (
    LineStatus,
    ReturnCategory,
    ReturnLine,
    ReturnRequest,
    ReturnStatus,
)
from .numbering import ReturnCodeGenerator
from .policies import MovementPolicy
from .summary import summarize_returns
from .validators import LineRequest, ReturnValidator

logger = logging.getLogger(__name__)

AUTO_APPROVAL_NOTE = 'auto-approved: internal return.'
AUTO_PROCESS_NOTE = 'auto-processed: internal return.'


@dataclass
class SubmitResult:
    success: bool
    message: str
    return_id: Optional[int] = None
    code: Optional[str] = None
    status: Optional[str] = None
    total_value: Decimal = Decimal('0.00')
    movements_applied: int = 0
    error_code: Optional[str] = None
    validations: list = field(default_factory=list)

    def to_dict(self):
        return {
            'success': self.success,
            'message': self.message,
            'return_id': self.return_id,
            'code': self.code,
            'status': self.status,
            'total_value': str(self.total_value),
            'movements_applied': self.movements_applied,
            'error_code': self.error_code,
            'validations': [result.to_dict() for result in self.validations],
        }


@dataclass
class ActionResult:
    success: bool
    message: str
    return_id: Optional[int] = None
    code: Optional[str] = None
    status: Optional[str] = None
    version: Optional[int] = None
    error_code: Optional[str] = None

    @classmethod
    def failed(cls, return_id, exc):
        return cls(success=False, message=exc.message, return_id=return_id, error_code=exc.code)

    def to_dict(self):
        return {
            'success': self.success,
            'message': self.message,
            'return_id': self.return_id,
            'code': self.code,
            'status': self.status,
            'version': self.version,
            'error_code': self.error_code,
        }


@dataclass
class LineOutcome:
    line_id: int
    material_id: int
    quantity: int
    status: str
    movements_applied: int = 0
    skipped: bool = False
    rejection_reason: Optional[str] = None
    validation: Optional[object] = None

    def to_dict(self):
        return {
            'line_id': self.line_id,
            'material_id': self.material_id,
            'quantity': self.quantity,
            'status': self.status,
            'movements_applied': self.movements_applied,
            'skipped': self.skipped,
            'rejection_reason': self.rejection_reason,
            'validation': self.validation.to_dict() if self.validation else None,
        }


@dataclass
class ProcessResult:
    success: bool
    message: str
    return_id: Optional[int] = None
    code: Optional[str] = None
    final_status: Optional[str] = None
    movements_applied: int = 0
    total_value: Decimal = Decimal('0.00')
    error_code: Optional[str] = None
    line_outcomes: List[LineOutcome] = field(default_factory=list)

    @property
    def processed_lines(self):
        return [o for o in self.line_outcomes if o.status == LineStatus.PROCESSED]

    @property
    def rejected_lines(self):
        return [o for o in self.line_outcomes if o.status == LineStatus.REJECTED]

    def to_dict(self):
        return {
            'success': self.success,
            'message': self.message,
            'return_id': self.return_id,
            'code': self.code,
            'final_status': self.final_status,
            'movements_applied': self.movements_applied,
            'total_value': str(self.total_value),
            'error_code': self.error_code,
            'line_outcomes': [outcome.to_dict() for outcome in self.line_outcomes],
        }


class ReturnWorkflowService:
    """Return request lifecycle: submit, approve, reject, process."""

    def __init__(self, ledger=None, validator=None, code_generator=None, policy=None):
        self.ledger = ledger or get_default_ledger()
        self.validator = validator or ReturnValidator(self.ledger)
        self.code_generator = code_generator or ReturnCodeGenerator()
        self.policy = policy or MovementPolicy()
        self.request_lock_ttl = getattr(settings, 'RETURNS_REQUEST_LOCK_TTL', 30)

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit_return(self, data, user):
        """
        Validate and create a return request.
        Internal returns are approved by the system user right away and,
        unless RETURNS_AUTO_PROCESS_INTERNAL is off, processed as well.
        """
        try:
            return_request, validations = self._create(data, user)
        except ValidationFailedError as e:
            logger.warning(f"Return submission by {getattr(user, 'username', None)} rejected: {e.message}")
            return SubmitResult(
                success=False,
                message=e.message,
                error_code=e.code,
                validations=e.results
            )
        except BusinessException as e:
            logger.warning(f"Return submission by {getattr(user, 'username', None)} rejected: {e.message}")
            return SubmitResult(success=False, message=e.message, error_code=e.code)

        movements_applied = 0
        message = '退貨單建立成功'
        if (
            return_request.category == ReturnCategory.INTERNAL
            and getattr(settings, 'RETURNS_AUTO_PROCESS_INTERNAL', True)
        ):
            from apps.accounts.models import User

            process_result = self.process_return(
                return_request.id,
                User.objects.get_system_user(),
                notes=AUTO_PROCESS_NOTE
            )
            movements_applied = process_result.movements_applied
            message = f'{message}，{process_result.message}'
            return_request.refresh_from_db()

        return SubmitResult(
            success=True,
            message=message,
            return_id=return_request.id,
            code=return_request.code,
            status=return_request.status,
            total_value=return_request.total_value,
            movements_applied=movements_applied,
            validations=validations
        )

    def create_return(self, data, user):
        """
        Create a return request, raising instead of returning a result.
        Raises ValidationFailedError when any line is invalid.
        """
        return_request, _ = self._create(data, user)
        return return_request

    def validate_lines(self, category, lines):
        """Validator results, with movement shape problems folded in."""
        category = self._parse_category(category)
        checked = []
        for line, result in zip(lines, self.validator.validate(lines)):
            try:
                self.policy.resolve(category, line)
            except InvalidMovementError as e:
                result = result.invalidated(e.code, e.message)
            checked.append(result)
        return checked

    def _create(self, data, user):
        category = self._parse_category(data.get('category'))
        reason = (data.get('reason') or '').strip()
        if not reason:
            raise ReturnInputError('請填寫退貨原因', 'REASON_REQUIRED')
        lines = [LineRequest.from_dict(item) for item in data.get('lines') or []]
        if not lines:
            raise ReturnInputError('退貨單至少需要一筆明細', 'LINES_REQUIRED')

        validations = self.validate_lines(category, lines)
        if not all(result.is_valid for result in validations):
            raise ValidationFailedError(validations)

        with transaction.atomic():
            generated = self.code_generator.generate(category)
            prices = [self._resolve_unit_price(line) for line in lines]
            total_value = round_currency(sum(
                (calculate_subtotal(line.quantity, price) for line, price in zip(lines, prices)),
                Decimal('0')
            ))

            return_request = ReturnRequest.objects.create(
                code=generated.code,
                code_is_fallback=generated.is_fallback,
                category=category,
                source_document_id=data.get('source_document_id') or '',
                source_document_type=data.get('source_document_type') or '',
                reason=reason,
                notes=data.get('notes') or '',
                requested_by=user,
                requested_at=data.get('requested_at') or timezone.now(),
                total_value=total_value,
                created_by=user,
                updated_by=user
            )
            ReturnLine.objects.bulk_create([
                ReturnLine(
                    return_request=return_request,
                    material_id=line.material_id,
                    quantity=line.quantity,
                    unit_price=price,
                    detail_reason=line.detail_reason,
                    source_location_id=line.source_location_id,
                    destination_location_id=line.destination_location_id,
                    created_by=user,
                    updated_by=user
                )
                for line, price in zip(lines, prices)
            ])

            if category == ReturnCategory.INTERNAL:
                from apps.accounts.models import User

                system_user = User.objects.get_system_user()
                self._save_transition(
                    return_request,
                    system_user,
                    status=ReturnStatus.APPROVED,
                    approved_by=system_user,
                    approved_at=timezone.now(),
                    approval_notes=AUTO_APPROVAL_NOTE
                )

        logger.info(
            f"Return {return_request.code} created by {getattr(user, 'username', None)}: "
            f"{len(lines)} lines, total {total_value}, status {return_request.status}"
        )
        return return_request, validations

    def _resolve_unit_price(self, line):
        if line.unit_price is not None:
            return round_currency(line.unit_price)
        meta = self.ledger.get_material_meta(line.material_id)
        if meta is not None and meta.unit_price is not None:
            return round_currency(meta.unit_price)
        return Decimal('0.00')

    # ------------------------------------------------------------------
    # Review
    # ------------------------------------------------------------------

    def approve_return(self, return_id, user, notes=None, version=None):
        try:
            return_request = self.approve(return_id, user, notes=notes, version=version)
        except BusinessException as e:
            logger.warning(f"Approve return {return_id} failed: {e.message}")
            return ActionResult.failed(return_id, e)
        return self._action_result(return_request, '退貨單已核准')

    def approve(self, return_id, user, notes=None, version=None):
        with self._request_lock(return_id), transaction.atomic():
            return_request = self._load_for_update(return_id, version)
            self._ensure_status(return_request, ReturnStatus.PENDING, ReturnStatus.APPROVED)
            self._save_transition(
                return_request,
                user,
                status=ReturnStatus.APPROVED,
                approved_by=user,
                approved_at=timezone.now(),
                approval_notes=notes or ''
            )

        logger.info(f"Return {return_request.code} approved by {getattr(user, 'username', None)}")
        return return_request

    def reject_return(self, return_id, user, reason, version=None):
        try:
            return_request = self.reject(return_id, user, reason, version=version)
        except BusinessException as e:
            logger.warning(f"Reject return {return_id} failed: {e.message}")
            return ActionResult.failed(return_id, e)
        return self._action_result(return_request, '退貨單已駁回')

    def reject(self, return_id, user, reason, version=None):
        reason = (reason or '').strip()
        if not reason:
            raise ReturnInputError('請填寫駁回原因', 'REASON_REQUIRED')

        with self._request_lock(return_id), transaction.atomic():
            return_request = self._load_for_update(return_id, version)
            self._ensure_status(return_request, ReturnStatus.PENDING, ReturnStatus.REJECTED)
            self._save_transition(
                return_request,
                user,
                status=ReturnStatus.REJECTED,
                rejected_by=user,
                rejected_at=timezone.now(),
                rejection_reason=reason
            )

        logger.info(f"Return {return_request.code} rejected by {getattr(user, 'username', None)}: {reason}")
        return return_request

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def process_return(self, return_id, user, notes=None, version=None):
        try:
            return self.process(return_id, user, notes=notes, version=version)
        except BusinessException as e:
            logger.warning(f"Process return {return_id} failed: {e.message}")
            return ProcessResult(
                success=False,
                message=e.message,
                return_id=return_id,
                error_code=e.code
            )

    def process(self, return_id, user, notes=None, version=None):
        """
        Apply an approved request to stock, line by line.
        Lines already processed by an earlier run are skipped.
        """
        with self._request_lock(return_id):
            with transaction.atomic():
                return_request = self._load_for_update(return_id, version)
                self._ensure_status(return_request, ReturnStatus.APPROVED, ReturnStatus.PROCESSED)

            lines = list(return_request.lines.select_related('material').order_by('id'))
            outcomes = [self._process_line(return_request, line, user) for line in lines]
            processed = [o for o in outcomes if o.status == LineStatus.PROCESSED]
            rejected = [o for o in outcomes if o.status == LineStatus.REJECTED]
            now = timezone.now()

            with transaction.atomic():
                if processed:
                    self._save_transition(
                        return_request,
                        user,
                        status=ReturnStatus.PROCESSED,
                        processed_by=user,
                        processed_at=now,
                        processing_notes=notes or ''
                    )
                else:
                    reasons = '；'.join(o.rejection_reason for o in rejected if o.rejection_reason)
                    self._save_transition(
                        return_request,
                        user,
                        status=ReturnStatus.REJECTED,
                        rejected_by=user,
                        rejected_at=now,
                        rejection_reason=f'所有明細皆無法處理：{reasons}',
                        processing_notes=notes or ''
                    )

        movements_applied = sum(o.movements_applied for o in outcomes)
        logger.info(
            f"Return {return_request.code} processed by {getattr(user, 'username', None)}: "
            f"{len(processed)} lines processed, {len(rejected)} rejected, "
            f"{movements_applied} movements, final status {return_request.status}"
        )
        return ProcessResult(
            success=bool(processed),
            message=f'退貨單處理完成，{len(processed)} 筆明細已處理，{len(rejected)} 筆明細被駁回',
            return_id=return_request.id,
            code=return_request.code,
            final_status=return_request.status,
            movements_applied=movements_applied,
            total_value=return_request.total_value,
            line_outcomes=outcomes
        )

    def _process_line(self, return_request, line, user):
        if line.line_status == LineStatus.PROCESSED:
            return LineOutcome(
                line_id=line.id,
                material_id=line.material_id,
                quantity=line.quantity,
                status=LineStatus.PROCESSED,
                skipped=True
            )

        validation = self.validator.validate_line(LineRequest.from_line(line))
        if not validation.is_valid:
            return self._reject_line(line, validation.rejection_reason, validation)

        try:
            plans = self.policy.resolve(return_request.category, line)
            with transaction.atomic():
                InventoryService.apply_changes(
                    line.material_id,
                    plans,
                    reference_type='ReturnRequest',
                    reference_id=return_request.id,
                    note=f'退貨單 {return_request.code}' + (f' - {line.detail_reason}' if line.detail_reason else ''),
                    user=user,
                    ledger=self.ledger
                )
                updated = ReturnLine.objects.filter(pk=line.pk).exclude(
                    line_status=LineStatus.PROCESSED
                ).update(
                    line_status=LineStatus.PROCESSED,
                    rejection_note='',
                    processed_by=user,
                    processed_at=timezone.now(),
                    updated_by=user,
                    updated_at=timezone.now()
                )
                if updated != 1:
                    raise ConcurrentModificationError(f'退貨明細 {line.id} 已被其他請求處理')
        except (InvalidMovementError, WouldUnderflowError, ConcurrentModificationError) as e:
            return self._reject_line(line, e.message, validation)
        except DatabaseError as e:
            logger.error(f"Return {return_request.code} line {line.id} failed to apply: {e}")
            return self._reject_line(line, f'處理失敗：{e}', validation)

        logger.info(
            f"Return {return_request.code} line {line.id} applied: "
            f"{', '.join(f'{p.movement_type} {p.signed_quantity:+d} @ {p.location_id}' for p in plans)}"
        )
        return LineOutcome(
            line_id=line.id,
            material_id=line.material_id,
            quantity=line.quantity,
            status=LineStatus.PROCESSED,
            movements_applied=len(plans),
            validation=validation
        )

    def _reject_line(self, line, reason, validation=None):
        ReturnLine.objects.filter(pk=line.pk).exclude(
            line_status=LineStatus.PROCESSED
        ).update(
            line_status=LineStatus.REJECTED,
            rejection_note=reason,
            updated_at=timezone.now()
        )
        logger.warning(f"Return line {line.id} rejected: {reason}")
        return LineOutcome(
            line_id=line.id,
            material_id=line.material_id,
            quantity=line.quantity,
            status=LineStatus.REJECTED,
            rejection_reason=reason,
            validation=validation
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @staticmethod
    def get_return(return_id):
        try:
            return ReturnRequest.objects.select_related(
                'requested_by', 'approved_by', 'rejected_by', 'processed_by'
            ).prefetch_related(
                'lines__material', 'lines__source_location', 'lines__destination_location'
            ).get(pk=return_id)
        except (ReturnRequest.DoesNotExist, ValueError, TypeError):
            raise ReturnNotFoundError(return_id)

    @staticmethod
    def get_pending_returns(filters=None):
        """Pending requests, newest first. Filters: category, requested_by, date_from, date_to."""
        filters = filters or {}
        queryset = ReturnRequest.objects.filter(
            status=ReturnStatus.PENDING
        ).select_related('requested_by').prefetch_related('lines__material')

        if filters.get('category'):
            queryset = queryset.filter(category=filters['category'])
        if filters.get('requested_by'):
            queryset = queryset.filter(requested_by_id=filters['requested_by'])

        date_from = parse_date_boundary(filters.get('date_from'))
        date_to = parse_date_boundary(filters.get('date_to'), end_of_day=True)
        if date_from:
            queryset = queryset.filter(requested_at__gte=date_from)
        if date_to:
            queryset = queryset.filter(requested_at__lte=date_to)

        return queryset.order_by('-requested_at', '-id')

    @staticmethod
    def get_summary(date_from=None, date_to=None):
        date_from = parse_date_boundary(date_from)
        date_to = parse_date_boundary(date_to, end_of_day=True)

        queryset = ReturnRequest.objects.prefetch_related('lines__material')
        if date_from:
            queryset = queryset.filter(requested_at__gte=date_from)
        if date_to:
            queryset = queryset.filter(requested_at__lte=date_to)

        return summarize_returns(
            queryset,
            date_from=date_from,
            date_to=date_to,
            top_n=getattr(settings, 'RETURNS_SUMMARY_TOP_MATERIALS', 10)
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_category(value):
        try:
            return ReturnCategory(value)
        except ValueError:
            raise ReturnInputError(f'不支援的退貨類型 {value}', 'INVALID_CATEGORY')

    @contextmanager
    def _request_lock(self, return_id):
        with distributed_lock(f'returns:request:{return_id}', ttl=self.request_lock_ttl) as lock_id:
            if lock_id is None:
                raise ConcurrentModificationError('退貨單正在被其他請求處理中，請稍後再試')
            yield

    @staticmethod
    def _load_for_update(return_id, version=None):
        try:
            return_request = ReturnRequest.objects.select_for_update().get(pk=return_id)
        except (ReturnRequest.DoesNotExist, ValueError, TypeError):
            raise ReturnNotFoundError(return_id)

        if version is not None and int(version) != return_request.version:
            raise ConcurrentModificationError()
        return return_request

    @staticmethod
    def _ensure_status(return_request, expected, target):
        if return_request.status != expected:
            raise InvalidTransitionError(return_request.status, target)

    @staticmethod
    def _save_transition(return_request, user, **fields):
        """Write a status transition only if nobody else did first."""
        updated = ReturnRequest.objects.filter(
            pk=return_request.pk,
            version=return_request.version
        ).update(
            version=F('version') + 1,
            updated_by=user,
            updated_at=timezone.now(),
            **fields
        )
        if updated != 1:
            raise ConcurrentModificationError()
        return_request.refresh_from_db()

    @staticmethod
    def _action_result(return_request, message):
        return ActionResult(
            success=True,
            message=message,
            return_id=return_request.id,
            code=return_request.code,
            status=return_request.status,
            version=return_request.version
        )
