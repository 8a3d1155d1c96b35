"""
Location model: a place where material stock is held.
"""
from django.db import models
from apps.core.models import BaseModel


class Location(BaseModel):
    """Stock location (warehouse, bay, work site)."""
    TYPE_CHOICES = [
        ('WAREHOUSE', '倉庫'),
        ('SITE', '工地'),
        ('QUARANTINE', '待檢區'),
        ('VIRTUAL', '虛擬儲位'),
    ]

    name = models.CharField(max_length=100, verbose_name='儲位名稱')
    code = models.CharField(max_length=20, unique=True, verbose_name='儲位代碼')
    location_type = models.CharField(
        max_length=20,
        choices=TYPE_CHOICES,
        default='WAREHOUSE',
        verbose_name='儲位類型'
    )
    address = models.TextField(blank=True, verbose_name='地址')
    is_active = models.BooleanField(default=True, verbose_name='啟用')

    class Meta:
        db_table = 'locations'
        verbose_name = '儲位'
        verbose_name_plural = '儲位'
        ordering = ['code']

    def __str__(self):
        return f'{self.name} ({self.code})'
