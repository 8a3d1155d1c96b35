"""
Inventory models: StockBalance, InventoryMovement.
"""
from django.db import models
from apps.core.models import BaseModel


class StockBalance(BaseModel):
    """Stock quantity per location/material."""
    location = models.ForeignKey(
        'locations.Location',
        on_delete=models.CASCADE,
        related_name='stock_balances',
        verbose_name='儲位'
    )
    material = models.ForeignKey(
        'materials.Material',
        on_delete=models.CASCADE,
        related_name='stock_balances',
        verbose_name='物料'
    )
    quantity = models.IntegerField(default=0, verbose_name='庫存數量')
    # Incremented on every write; writers compare-and-swap on it
    version = models.PositiveIntegerField(default=1, verbose_name='版本')

    class Meta:
        db_table = 'stock_balances'
        verbose_name = '儲位庫存'
        verbose_name_plural = '儲位庫存'
        unique_together = ['location', 'material']
        ordering = ['material_id', 'location_id']
        indexes = [
            models.Index(fields=['location', 'material']),
        ]

    def __str__(self):
        return f'{self.material.name} @ {self.location.name}: {self.quantity}'


class InventoryMovement(BaseModel):
    """Inventory movement log."""
    TYPE_CHOICES = [
        ('RETURN_IN', '退貨入庫'),
        ('RETURN_OUT', '退貨出庫'),
        ('TRANSFER_IN', '退回移入'),
        ('TRANSFER_OUT', '退回移出'),
        ('ADJUST_IN', '調整增加'),
        ('ADJUST_OUT', '調整減少'),
    ]

    location = models.ForeignKey(
        'locations.Location',
        on_delete=models.CASCADE,
        related_name='movements',
        verbose_name='儲位'
    )
    material = models.ForeignKey(
        'materials.Material',
        on_delete=models.CASCADE,
        related_name='movements',
        verbose_name='物料'
    )
    movement_type = models.CharField(
        max_length=20,
        choices=TYPE_CHOICES,
        verbose_name='異動類型'
    )
    quantity = models.IntegerField(verbose_name='異動數量')
    balance = models.IntegerField(verbose_name='異動後餘額')
    reference_type = models.CharField(
        max_length=50,
        blank=True,
        verbose_name='來源類型'
    )
    reference_id = models.BigIntegerField(null=True, blank=True, verbose_name='來源ID')
    note = models.TextField(blank=True, verbose_name='備註')

    class Meta:
        db_table = 'inventory_movements'
        verbose_name = '庫存異動'
        verbose_name_plural = '庫存異動'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['location', 'material', 'created_at']),
            models.Index(fields=['reference_type', 'reference_id']),
        ]

    def __str__(self):
        return f'{self.material.name}: {self.quantity:+d}'
