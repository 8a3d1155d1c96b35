"""
Account models: User, Role.
Users are the actors that request, approve, reject and process returns.
"""
from django.db import models
from django.contrib.auth.models import AbstractBaseUser, BaseUserManager, PermissionsMixin
from apps.core.models import TimeStampedModel

SYSTEM_USERNAME = 'system'


class Role(TimeStampedModel):
    """Role model for coarse role gates."""
    CODE_CHOICES = [
        ('ADMIN', '系統管理員'),
        ('MANAGER', '主管'),
        ('WAREHOUSE', '倉管人員'),
        ('REQUESTER', '申請人員'),
        ('VIEWER', '檢視者'),
    ]

    name = models.CharField(max_length=50, verbose_name='角色名稱')
    code = models.CharField(
        max_length=20,
        choices=CODE_CHOICES,
        unique=True,
        verbose_name='角色代碼'
    )
    description = models.TextField(blank=True, verbose_name='描述')
    is_active = models.BooleanField(default=True, verbose_name='啟用')

    class Meta:
        db_table = 'roles'
        verbose_name = '角色'
        verbose_name_plural = '角色'
        ordering = ['id']

    def __str__(self):
        return f'{self.name} ({self.code})'


class UserManager(BaseUserManager):
    """Custom user manager."""

    def create_user(self, username, email, password=None, **extra_fields):
        """Create and save a regular user."""
        if not username:
            raise ValueError('使用者必須有帳號')
        if not email:
            raise ValueError('使用者必須有電子郵件')

        email = self.normalize_email(email)
        user = self.model(username=username, email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, username, email, password=None, **extra_fields):
        """Create and save a superuser."""
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)

        if extra_fields.get('is_staff') is not True:
            raise ValueError('Superuser must have is_staff=True.')
        if extra_fields.get('is_superuser') is not True:
            raise ValueError('Superuser must have is_superuser=True.')

        return self.create_user(username, email, password, **extra_fields)

    def get_system_user(self):
        """
        Return the implicit actor used for automatic transitions.
        The account cannot log in.
        """
        user, created = self.get_or_create(
            username=SYSTEM_USERNAME,
            defaults={
                'email': 'system@localhost',
                'display_name': '系統',
                'is_active': False,
            }
        )
        if created:
            user.set_unusable_password()
            user.save(update_fields=['password'])
        return user


class User(AbstractBaseUser, PermissionsMixin, TimeStampedModel):
    """Custom User model."""
    username = models.CharField(
        max_length=50,
        unique=True,
        verbose_name='帳號'
    )
    email = models.EmailField(
        unique=True,
        verbose_name='電子郵件'
    )
    display_name = models.CharField(
        max_length=100,
        verbose_name='顯示名稱'
    )
    role = models.ForeignKey(
        Role,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='users',
        verbose_name='角色'
    )

    is_active = models.BooleanField(default=True, verbose_name='啟用')
    is_staff = models.BooleanField(default=False, verbose_name='員工權限')

    objects = UserManager()

    USERNAME_FIELD = 'username'
    REQUIRED_FIELDS = ['email', 'display_name']

    class Meta:
        db_table = 'users'
        verbose_name = '使用者'
        verbose_name_plural = '使用者'
        ordering = ['-created_at']

    def __str__(self):
        return f'{self.display_name} ({self.username})'

    @property
    def is_system(self):
        return self.username == SYSTEM_USERNAME
