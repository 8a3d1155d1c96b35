"""
Material model: catalogue entry for stocked materials.
"""
from django.db import models
from apps.core.models import BaseModel


class Material(BaseModel):
    """Material model."""
    STATUS_CHOICES = [
        ('ACTIVE', '啟用'),
        ('INACTIVE', '停用'),
    ]

    name = models.CharField(max_length=200, verbose_name='物料名稱')
    code = models.CharField(max_length=50, unique=True, verbose_name='物料代碼')
    description = models.TextField(blank=True, verbose_name='描述')
    unit = models.CharField(max_length=20, default='PCS', verbose_name='單位')
    unit_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        verbose_name='單價'
    )
    # Sum of all StockBalance rows, refreshed by the ledger on every write
    current_stock = models.IntegerField(default=0, verbose_name='目前庫存')
    allow_returns = models.BooleanField(default=True, verbose_name='允許退貨')
    status = models.CharField(
        max_length=15,
        choices=STATUS_CHOICES,
        default='ACTIVE',
        verbose_name='狀態'
    )

    class Meta:
        db_table = 'materials'
        verbose_name = '物料'
        verbose_name_plural = '物料'
        ordering = ['code']
        indexes = [
            models.Index(fields=['code']),
            models.Index(fields=['status']),
        ]

    def __str__(self):
        return f'{self.name} ({self.code})'

    @property
    def is_active(self):
        return self.status == 'ACTIVE'
