"""
Tests for the return workflow service.
"""
from decimal import Decimal
from unittest.mock import patch

import pytest
from django.db import DatabaseError

from apps.core.exceptions import ReturnNotFoundError, ValidationFailedError
from apps.core.locks import DistributedLockService
from apps.inventory.ledger import DatabaseStockLedger
from apps.inventory.models import InventoryMovement
from apps.returns.models import LineStatus, ReturnLine, ReturnRequest, ReturnStatus
from apps.returns.numbering import GeneratedCode
from apps.returns.services import AUTO_APPROVAL_NOTE, ReturnWorkflowService


def submit_data(category, lines, **extra):
    return {'category': category, 'reason': '測試退貨', 'lines': lines, **extra}


@pytest.fixture
def service():
    return ReturnWorkflowService()


@pytest.fixture
def l1(create_location):
    return create_location(name='主倉庫', code='L1')


@pytest.fixture
def l2(create_location):
    return create_location(name='工地倉', code='L2')


@pytest.fixture
def m1(create_material):
    return create_material(name='鋼筋', code='M1', unit_price=Decimal('12.50'))


@pytest.fixture
def m2(create_material):
    return create_material(name='水泥', code='M2', unit_price=Decimal('80.00'))


@pytest.fixture
def pending_customer_return(service, user, m1, m2, l1, l2, set_stock):
    """A pending customer return of two lines, both taken from L1 into L2."""
    set_stock(m1, l1, 10)
    set_stock(m2, l1, 10)
    result = service.submit_return(submit_data('CUSTOMER', [
        {'material_id': m1.id, 'quantity': 3, 'source_location_id': l1.id, 'destination_location_id': l2.id},
        {'material_id': m2.id, 'quantity': 4, 'source_location_id': l1.id, 'destination_location_id': l2.id},
    ]), user)
    assert result.success
    return ReturnRequest.objects.get(pk=result.return_id)


@pytest.fixture
def approved_customer_return(service, manager_user, pending_customer_return):
    result = service.approve_return(pending_customer_return.id, manager_user)
    assert result.success
    pending_customer_return.refresh_from_db()
    return pending_customer_return


@pytest.mark.django_db
class TestSubmitReturn:
    """Tests for ReturnWorkflowService.submit_return."""

    def test_internal_return_is_approved_and_processed(self, service, user, m1, l1, l2, set_stock, stock_of):
        set_stock(m1, l1, 10)

        result = service.submit_return(submit_data('INTERNAL', [
            {'material_id': m1.id, 'quantity': 5, 'source_location_id': l1.id, 'destination_location_id': l2.id},
        ]), user)

        assert result.success is True
        assert result.status == ReturnStatus.PROCESSED
        assert result.movements_applied == 2
        assert stock_of(m1, l1) == 5
        assert stock_of(m1, l2) == 5

        return_request = ReturnRequest.objects.get(pk=result.return_id)
        assert return_request.approved_by.is_system is True
        assert return_request.approval_notes == AUTO_APPROVAL_NOTE
        assert return_request.processed_by.is_system is True
        assert return_request.code.startswith('RET-INT-')

    def test_internal_return_without_auto_process(self, settings, service, user, m1, l1, l2, set_stock, stock_of):
        settings.RETURNS_AUTO_PROCESS_INTERNAL = False
        set_stock(m1, l1, 10)

        result = service.submit_return(submit_data('INTERNAL', [
            {'material_id': m1.id, 'quantity': 5, 'source_location_id': l1.id, 'destination_location_id': l2.id},
        ]), user)

        assert result.success is True
        assert result.status == ReturnStatus.APPROVED
        assert result.movements_applied == 0
        assert stock_of(m1, l1) == 10

    def test_insufficient_stock_creates_nothing(self, service, user, m2, l1, set_stock):
        set_stock(m2, l1, 10)

        result = service.submit_return(submit_data('SUPPLIER', [
            {'material_id': m2.id, 'quantity': 100, 'source_location_id': l1.id},
        ]), user)

        assert result.success is False
        assert result.return_id is None
        assert result.validations[0].error_code == 'INSUFFICIENT_STOCK'
        assert result.validations[0].available_quantity == 10
        assert ReturnRequest.objects.count() == 0
        assert ReturnLine.objects.count() == 0

    def test_one_invalid_line_rejects_the_whole_submission(self, service, user, m1, m2, l1, l2, set_stock):
        set_stock(m1, l1, 10)
        m2.allow_returns = False
        m2.save()

        result = service.submit_return(submit_data('CUSTOMER', [
            {'material_id': m1.id, 'quantity': 1, 'destination_location_id': l2.id},
            {'material_id': m2.id, 'quantity': 1, 'destination_location_id': l2.id},
        ]), user)

        assert result.success is False
        assert [v.is_valid for v in result.validations] == [True, False]
        assert result.validations[1].error_code == 'RETURNS_NOT_ALLOWED'
        assert ReturnRequest.objects.count() == 0

    def test_missing_destination_is_an_invalid_line(self, service, user, m1, l1, set_stock):
        set_stock(m1, l1, 10)

        result = service.submit_return(submit_data('CUSTOMER', [
            {'material_id': m1.id, 'quantity': 1, 'source_location_id': l1.id},
        ]), user)

        assert result.success is False
        assert result.validations[0].error_code == 'INVALID_MOVEMENT'
        assert ReturnRequest.objects.count() == 0

    def test_internal_same_locations_is_an_invalid_line(self, service, user, m1, l1, set_stock):
        set_stock(m1, l1, 10)

        result = service.submit_return(submit_data('INTERNAL', [
            {'material_id': m1.id, 'quantity': 1, 'source_location_id': l1.id, 'destination_location_id': l1.id},
        ]), user)

        assert result.success is False
        assert result.validations[0].error_code == 'INVALID_MOVEMENT'

    def test_invalid_category(self, service, user, m1):
        result = service.submit_return(submit_data('DONATION', [{'material_id': m1.id, 'quantity': 1}]), user)

        assert result.success is False
        assert result.error_code == 'INVALID_CATEGORY'

    def test_total_value_and_unit_prices(self, service, user, m1, m2, create_material, l1, l2, set_stock):
        free = create_material(name='無價物料', code='M3', unit_price=None)
        for material in (m1, m2, free):
            set_stock(material, l1, 10)

        result = service.submit_return(submit_data('CUSTOMER', [
            {'material_id': m1.id, 'quantity': 2, 'destination_location_id': l2.id},
            {'material_id': m2.id, 'quantity': 3, 'unit_price': Decimal('70.00'), 'destination_location_id': l2.id},
            {'material_id': free.id, 'quantity': 4, 'destination_location_id': l2.id},
        ]), user)

        assert result.success is True
        assert result.total_value == Decimal('235.00')
        prices = list(ReturnLine.objects.filter(return_request_id=result.return_id).values_list('unit_price', flat=True))
        assert prices == [Decimal('12.50'), Decimal('70.00'), Decimal('0.00')]

        return_request = ReturnRequest.objects.get(pk=result.return_id)
        assert return_request.total_value == sum(line.subtotal for line in return_request.lines.all())

    def test_customer_submissions_get_distinct_codes(self, service, user, m1, l1, l2, set_stock):
        set_stock(m1, l1, 10)
        data = submit_data('CUSTOMER', [{'material_id': m1.id, 'quantity': 1, 'destination_location_id': l2.id}])

        first = service.submit_return(data, user)
        second = service.submit_return(data, user)

        assert first.code != second.code
        assert first.code.startswith('RET-CUST-')
        assert second.code.startswith('RET-CUST-')

    def test_fallback_code_is_flagged(self, user, m1, l1, l2, set_stock):
        set_stock(m1, l1, 10)
        service = ReturnWorkflowService()

        with patch.object(
            service.code_generator,
            'generate',
            return_value=GeneratedCode('RET-CUST-2610-T1791000000000BEEF', None, True)
        ):
            result = service.submit_return(submit_data('CUSTOMER', [
                {'material_id': m1.id, 'quantity': 1, 'destination_location_id': l2.id},
            ]), user)

        assert result.success is True
        assert ReturnRequest.objects.get(pk=result.return_id).code_is_fallback is True

    def test_submission_does_not_move_stock(self, pending_customer_return, m1, l1, l2, stock_of):
        assert pending_customer_return.status == ReturnStatus.PENDING
        assert stock_of(m1, l1) == 10
        assert stock_of(m1, l2) == 0
        assert InventoryMovement.objects.count() == 0

    def test_create_return_raises_with_report(self, service, user, m1, l1):
        with pytest.raises(ValidationFailedError) as exc_info:
            service.create_return(submit_data('SUPPLIER', [
                {'material_id': m1.id, 'quantity': 1, 'source_location_id': l1.id},
            ]), user)

        assert exc_info.value.results[0].error_code == 'INSUFFICIENT_STOCK'


@pytest.mark.django_db
class TestApproveAndReject:
    """Tests for approve_return and reject_return."""

    def test_approve(self, service, manager_user, pending_customer_return):
        result = service.approve_return(pending_customer_return.id, manager_user, notes='同意')

        assert result.success is True
        assert result.status == ReturnStatus.APPROVED
        pending_customer_return.refresh_from_db()
        assert pending_customer_return.approved_by == manager_user
        assert pending_customer_return.approval_notes == '同意'
        assert pending_customer_return.approved_at is not None

    def test_approve_non_pending_fails_without_change(self, service, manager_user, approved_customer_return):
        before = approved_customer_return.version

        result = service.approve_return(approved_customer_return.id, manager_user)

        assert result.success is False
        assert result.error_code == 'INVALID_TRANSITION'
        approved_customer_return.refresh_from_db()
        assert approved_customer_return.version == before

    def test_approve_missing(self, service, manager_user, db):
        result = service.approve_return(999999, manager_user)

        assert result.success is False
        assert result.error_code == 'RETURN_NOT_FOUND'

    def test_approve_with_stale_version(self, service, manager_user, pending_customer_return):
        result = service.approve_return(
            pending_customer_return.id,
            manager_user,
            version=pending_customer_return.version + 1
        )

        assert result.success is False
        assert result.error_code == 'CONCURRENT_MODIFICATION'
        pending_customer_return.refresh_from_db()
        assert pending_customer_return.status == ReturnStatus.PENDING

    def test_approve_while_locked(self, service, manager_user, pending_customer_return):
        DistributedLockService.acquire_lock(f'returns:request:{pending_customer_return.id}', ttl_seconds=30)

        result = service.approve_return(pending_customer_return.id, manager_user)

        assert result.success is False
        assert result.error_code == 'CONCURRENT_MODIFICATION'

    def test_reject(self, service, manager_user, pending_customer_return, m1, l1, stock_of):
        result = service.reject_return(pending_customer_return.id, manager_user, reason='資料不符')

        assert result.success is True
        pending_customer_return.refresh_from_db()
        assert pending_customer_return.status == ReturnStatus.REJECTED
        assert pending_customer_return.rejected_by == manager_user
        assert pending_customer_return.rejection_reason == '資料不符'
        assert stock_of(m1, l1) == 10
        assert InventoryMovement.objects.count() == 0

    def test_reject_requires_reason(self, service, manager_user, pending_customer_return):
        result = service.reject_return(pending_customer_return.id, manager_user, reason='  ')

        assert result.success is False
        assert result.error_code == 'REASON_REQUIRED'
        pending_customer_return.refresh_from_db()
        assert pending_customer_return.status == ReturnStatus.PENDING

    def test_reject_non_pending_fails(self, service, manager_user, approved_customer_return):
        result = service.reject_return(approved_customer_return.id, manager_user, reason='太晚了')

        assert result.success is False
        assert result.error_code == 'INVALID_TRANSITION'


@pytest.mark.django_db
class TestProcessReturn:
    """Tests for process_return."""

    def test_process_applies_every_line(self, service, warehouse_user, approved_customer_return, m1, m2, l1, l2, stock_of):
        result = service.process_return(approved_customer_return.id, warehouse_user, notes='入庫完成')

        assert result.success is True
        assert result.final_status == ReturnStatus.PROCESSED
        assert result.movements_applied == 2
        assert stock_of(m1, l2) == 3
        assert stock_of(m2, l2) == 4

        approved_customer_return.refresh_from_db()
        assert approved_customer_return.processed_by == warehouse_user
        assert approved_customer_return.processing_notes == '入庫完成'
        assert set(approved_customer_return.lines.values_list('line_status', flat=True)) == {LineStatus.PROCESSED}

        movements = InventoryMovement.objects.filter(reference_type='ReturnRequest', reference_id=approved_customer_return.id)
        assert movements.count() == 2
        assert set(movements.values_list('movement_type', flat=True)) == {'RETURN_IN'}

    def test_partial_outcome_when_stock_changed(
        self, service, warehouse_user, approved_customer_return, m1, m2, l1, l2, set_stock, stock_of
    ):
        set_stock(m2, l1, 2)

        result = service.process_return(approved_customer_return.id, warehouse_user)

        assert result.success is True
        assert result.final_status == ReturnStatus.PROCESSED
        assert [o.status for o in result.line_outcomes] == [LineStatus.PROCESSED, LineStatus.REJECTED]
        assert result.rejected_lines[0].validation.error_code == 'INSUFFICIENT_STOCK'
        assert stock_of(m1, l2) == 3
        assert stock_of(m2, l2) == 0

        rejected = ReturnLine.objects.get(return_request=approved_customer_return, material=m2)
        assert rejected.line_status == LineStatus.REJECTED
        assert rejected.rejection_note

    def test_all_lines_rejected_rejects_request(
        self, service, warehouse_user, approved_customer_return, m1, m2, l1, set_stock
    ):
        set_stock(m1, l1, 0)
        set_stock(m2, l1, 0)

        result = service.process_return(approved_customer_return.id, warehouse_user)

        assert result.success is False
        assert result.error_code is None
        assert result.final_status == ReturnStatus.REJECTED
        assert len(result.rejected_lines) == 2
        approved_customer_return.refresh_from_db()
        assert approved_customer_return.status == ReturnStatus.REJECTED
        assert approved_customer_return.rejection_reason
        assert InventoryMovement.objects.count() == 0

    def test_process_pending_fails(self, service, warehouse_user, pending_customer_return):
        result = service.process_return(pending_customer_return.id, warehouse_user)

        assert result.success is False
        assert result.error_code == 'INVALID_TRANSITION'
        assert InventoryMovement.objects.count() == 0

    def test_process_twice_never_double_applies(
        self, service, warehouse_user, approved_customer_return, m1, l2, stock_of
    ):
        service.process_return(approved_customer_return.id, warehouse_user)

        second = service.process_return(approved_customer_return.id, warehouse_user)

        assert second.success is False
        assert second.error_code == 'INVALID_TRANSITION'
        assert stock_of(m1, l2) == 3

    def test_retry_skips_lines_processed_earlier(
        self, service, warehouse_user, approved_customer_return, m1, m2, l2, stock_of
    ):
        # An earlier run applied the first line then stopped
        first_line = approved_customer_return.lines.order_by('id').first()
        ReturnLine.objects.filter(pk=first_line.pk).update(line_status=LineStatus.PROCESSED)

        result = service.process_return(approved_customer_return.id, warehouse_user)

        assert result.final_status == ReturnStatus.PROCESSED
        assert result.line_outcomes[0].skipped is True
        assert result.line_outcomes[0].movements_applied == 0
        assert result.movements_applied == 1
        assert stock_of(m1, l2) == 0
        assert stock_of(m2, l2) == 4

    def test_supplier_return_never_goes_negative(
        self, service, user, manager_user, warehouse_user, m2, l1, set_stock, stock_of
    ):
        set_stock(m2, l1, 10)
        submitted = service.submit_return(submit_data('SUPPLIER', [
            {'material_id': m2.id, 'quantity': 8, 'source_location_id': l1.id},
        ]), user)
        service.approve_return(submitted.return_id, manager_user)
        set_stock(m2, l1, 5)

        result = service.process_return(submitted.return_id, warehouse_user)

        assert result.final_status == ReturnStatus.REJECTED
        assert stock_of(m2, l1) == 5

    def test_supplier_return_removes_stock(
        self, service, user, manager_user, warehouse_user, m2, l1, set_stock, stock_of
    ):
        set_stock(m2, l1, 10)
        submitted = service.submit_return(submit_data('SUPPLIER', [
            {'material_id': m2.id, 'quantity': 10, 'source_location_id': l1.id},
        ]), user)
        service.approve_return(submitted.return_id, manager_user)

        result = service.process_return(submitted.return_id, warehouse_user)

        assert result.final_status == ReturnStatus.PROCESSED
        assert stock_of(m2, l1) == 0
        m2.refresh_from_db()
        assert m2.current_stock == 0

    def test_underflow_at_apply_rejects_line(
        self, service, warehouse_user, approved_customer_return, m1, l2, stock_of
    ):
        from apps.core.exceptions import WouldUnderflowError

        with patch(
            'apps.inventory.services.project_balances',
            side_effect=WouldUnderflowError(m1.id, l2.id, 0, -3)
        ):
            result = service.process_return(approved_customer_return.id, warehouse_user)

        assert result.final_status == ReturnStatus.REJECTED
        assert stock_of(m1, l2) == 0
        assert InventoryMovement.objects.count() == 0

    def test_database_error_on_one_line_is_isolated(
        self, service, warehouse_user, approved_customer_return, m1, m2, l2, stock_of
    ):
        record_movement = DatabaseStockLedger.record_movement

        def deadlock_on_m2(ledger, **kwargs):
            if kwargs['material_id'] == m2.id:
                raise DatabaseError('deadlock detected')
            return record_movement(ledger, **kwargs)

        with patch.object(DatabaseStockLedger, 'record_movement', deadlock_on_m2):
            result = service.process_return(approved_customer_return.id, warehouse_user)

        assert result.success is True
        assert result.final_status == ReturnStatus.PROCESSED
        assert [o.status for o in result.line_outcomes] == [LineStatus.PROCESSED, LineStatus.REJECTED]
        assert 'deadlock detected' in result.line_outcomes[1].rejection_reason
        assert stock_of(m1, l2) == 3
        assert stock_of(m2, l2) == 0
        assert InventoryMovement.objects.count() == 1

        failed_line = ReturnLine.objects.get(return_request=approved_customer_return, material=m2)
        assert failed_line.line_status == LineStatus.REJECTED

    def test_database_error_on_every_line_rejects_request(
        self, service, warehouse_user, approved_customer_return
    ):
        with patch.object(
            DatabaseStockLedger,
            'record_movement',
            side_effect=DatabaseError('lock wait timeout exceeded')
        ):
            result = service.process_return(approved_customer_return.id, warehouse_user)

        assert result.success is False
        assert result.error_code is None
        assert result.final_status == ReturnStatus.REJECTED
        assert len(result.rejected_lines) == 2
        assert InventoryMovement.objects.count() == 0


@pytest.mark.django_db
class TestQueries:
    """Tests for get_return and get_pending_returns."""

    def test_get_return(self, service, pending_customer_return):
        fetched = service.get_return(pending_customer_return.id)

        assert fetched.code == pending_customer_return.code
        assert len(fetched.lines.all()) == 2

    def test_get_return_missing(self, service, db):
        with pytest.raises(ReturnNotFoundError):
            service.get_return(999999)

    def test_pending_returns(self, service, manager_user, user, m1, l1, l2, set_stock):
        set_stock(m1, l1, 10)
        line = [{'material_id': m1.id, 'quantity': 1, 'source_location_id': l1.id, 'destination_location_id': l2.id}]
        first = service.submit_return(submit_data('CUSTOMER', line), user)
        second = service.submit_return(submit_data('CUSTOMER', line), user)
        approved = service.submit_return(submit_data('CUSTOMER', line), user)
        service.approve_return(approved.return_id, manager_user)
        service.submit_return(submit_data('INTERNAL', line), user)

        pending = list(service.get_pending_returns())

        assert [r.id for r in pending] == [second.return_id, first.return_id]

    def test_pending_returns_filters(self, service, user, manager_user, m1, l1, l2, set_stock):
        set_stock(m1, l1, 10)
        line = [{'material_id': m1.id, 'quantity': 1, 'source_location_id': l1.id, 'destination_location_id': l2.id}]
        mine = service.submit_return(submit_data('CUSTOMER', line), user)
        service.submit_return(submit_data('SUPPLIER', line), manager_user)

        by_category = service.get_pending_returns({'category': 'CUSTOMER'})
        by_requester = service.get_pending_returns({'requested_by': user.id})
        out_of_range = service.get_pending_returns({'date_to': '2000-01-01'})

        assert [r.id for r in by_category] == [mine.return_id]
        assert [r.id for r in by_requester] == [mine.return_id]
        assert list(out_of_range) == []
