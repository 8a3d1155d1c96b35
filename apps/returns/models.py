"""
Return models: ReturnRequest, ReturnLine, ReturnCodeSequence.
"""
from django.db import models
from django.conf import settings
from django.utils import timezone

from apps.core.models import BaseModel, TimeStampedModel
from apps.core.utils import calculate_subtotal


class ReturnCategory(models.TextChoices):
    CUSTOMER = 'CUSTOMER', '客戶退貨'
    SUPPLIER = 'SUPPLIER', '退回供應商'
    INTERNAL = 'INTERNAL', '內部退回'


class ReturnStatus(models.TextChoices):
    PENDING = 'PENDING', '待審核'
    APPROVED = 'APPROVED', '已核准'
    REJECTED = 'REJECTED', '已駁回'
    PROCESSED = 'PROCESSED', '已處理'


class LineStatus(models.TextChoices):
    PENDING = 'PENDING', '待處理'
    PROCESSED = 'PROCESSED', '已處理'
    REJECTED = 'REJECTED', '已駁回'


class SourceDocumentType(models.TextChoices):
    SALE = 'SALE', '銷貨單'
    PURCHASE = 'PURCHASE', '進貨單'
    ISSUE = 'ISSUE', '領料單'


class ReturnRequest(BaseModel):
    """Materials return request."""
    code = models.CharField(max_length=40, unique=True, verbose_name='退貨單號')
    category = models.CharField(
        max_length=20,
        choices=ReturnCategory.choices,
        verbose_name='退貨類型'
    )
    source_document_id = models.CharField(max_length=64, blank=True, verbose_name='來源單據編號')
    source_document_type = models.CharField(
        max_length=20,
        choices=SourceDocumentType.choices,
        blank=True,
        verbose_name='來源單據類型'
    )
    reason = models.TextField(verbose_name='退貨原因')
    notes = models.TextField(blank=True, verbose_name='備註')
    status = models.CharField(
        max_length=20,
        choices=ReturnStatus.choices,
        default=ReturnStatus.PENDING,
        verbose_name='狀態'
    )
    requested_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='requested_returns',
        verbose_name='申請人'
    )
    requested_at = models.DateTimeField(default=timezone.now, verbose_name='申請時間')
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='approved_returns',
        verbose_name='核准人'
    )
    approved_at = models.DateTimeField(null=True, blank=True, verbose_name='核准時間')
    approval_notes = models.TextField(blank=True, verbose_name='核准備註')
    rejected_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='rejected_returns',
        verbose_name='駁回人'
    )
    rejected_at = models.DateTimeField(null=True, blank=True, verbose_name='駁回時間')
    rejection_reason = models.TextField(blank=True, verbose_name='駁回原因')
    processed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='processed_returns',
        verbose_name='處理人'
    )
    processed_at = models.DateTimeField(null=True, blank=True, verbose_name='處理時間')
    processing_notes = models.TextField(blank=True, verbose_name='處理備註')
    total_value = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=0,
        verbose_name='退貨總額'
    )
    # Bumped by every status transition; conditional updates compare on it
    version = models.PositiveIntegerField(default=1, verbose_name='版本')
    code_is_fallback = models.BooleanField(default=False, verbose_name='備援單號')

    class Meta:
        db_table = 'return_requests'
        verbose_name = '退貨單'
        verbose_name_plural = '退貨單'
        ordering = ['-requested_at', '-id']
        indexes = [
            models.Index(fields=['status', 'requested_at']),
            models.Index(fields=['category', 'requested_at']),
        ]

    def __str__(self):
        return self.code


class ReturnLine(BaseModel):
    """Return request line item."""
    return_request = models.ForeignKey(
        ReturnRequest,
        on_delete=models.CASCADE,
        related_name='lines',
        verbose_name='退貨單'
    )
    material = models.ForeignKey(
        'materials.Material',
        on_delete=models.PROTECT,
        related_name='return_lines',
        verbose_name='物料'
    )
    quantity = models.PositiveIntegerField(verbose_name='數量')
    unit_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=0,
        verbose_name='單價'
    )
    detail_reason = models.CharField(max_length=200, blank=True, verbose_name='明細原因')
    source_location = models.ForeignKey(
        'locations.Location',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='outgoing_return_lines',
        verbose_name='來源儲位'
    )
    destination_location = models.ForeignKey(
        'locations.Location',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='incoming_return_lines',
        verbose_name='目的儲位'
    )
    line_status = models.CharField(
        max_length=20,
        choices=LineStatus.choices,
        default=LineStatus.PENDING,
        verbose_name='明細狀態'
    )
    rejection_note = models.TextField(blank=True, verbose_name='駁回說明')
    processed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='processed_return_lines',
        verbose_name='處理人'
    )
    processed_at = models.DateTimeField(null=True, blank=True, verbose_name='處理時間')

    class Meta:
        db_table = 'return_lines'
        verbose_name = '退貨明細'
        verbose_name_plural = '退貨明細'
        ordering = ['id']

    def __str__(self):
        return f'{self.return_request.code} - {self.material.name}'

    @property
    def subtotal(self):
        return calculate_subtotal(self.quantity, self.unit_price)


class ReturnCodeSequence(TimeStampedModel):
    """Last issued return code number per prefix and month."""
    prefix = models.CharField(max_length=20, verbose_name='前綴')
    period = models.CharField(max_length=4, verbose_name='期間')
    last_number = models.PositiveIntegerField(default=0, verbose_name='目前序號')

    class Meta:
        db_table = 'return_code_sequences'
        verbose_name = '退貨單號序列'
        verbose_name_plural = '退貨單號序列'
        unique_together = ['prefix', 'period']

    def __str__(self):
        return f'{self.prefix}-{self.period}: {self.last_number}'
