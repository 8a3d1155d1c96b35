"""
Pytest configuration and shared fixtures.
"""
import pytest
from django.core.cache import cache
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken


@pytest.fixture(autouse=True)
def clear_cache():
    """Locks live in the cache; start every test without any."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def api_client():
    """Return an API client instance."""
    return APIClient()


@pytest.fixture
def create_user(db):
    """Factory fixture to create users."""
    def _create_user(
        username='testuser',
        password='testpass123',
        email=None,
        display_name='Test User',
        is_superuser=False,
        **kwargs
    ):
        from apps.accounts.models import User
        user = User.objects.create_user(
            username=username,
            password=password,
            email=email or f'{username}@example.com',
            display_name=display_name,
            is_superuser=is_superuser,
            **kwargs
        )
        return user
    return _create_user


@pytest.fixture
def create_role(db):
    """Factory fixture to create roles."""
    def _create_role(name='Test Role', code='VIEWER', **kwargs):
        from apps.accounts.models import Role
        role, _ = Role.objects.get_or_create(
            code=code,
            defaults={'name': name, **kwargs}
        )
        return role
    return _create_role


@pytest.fixture
def user(create_user, create_role):
    """Create a regular user with REQUESTER role."""
    return create_user(role=create_role(name='申請人員', code='REQUESTER'))


@pytest.fixture
def admin_user(create_user, create_role):
    """Create an admin user with ADMIN role."""
    admin_role = create_role(name='系統管理員', code='ADMIN')
    return create_user(
        username='admin',
        display_name='Admin User',
        is_superuser=True,
        is_staff=True,
        role=admin_role
    )


@pytest.fixture
def manager_user(create_user, create_role):
    """Create a user with MANAGER role."""
    return create_user(
        username='manager',
        display_name='Manager User',
        role=create_role(name='主管', code='MANAGER')
    )


@pytest.fixture
def warehouse_user(create_user, create_role):
    """Create a user with WAREHOUSE role."""
    return create_user(
        username='keeper',
        display_name='Warehouse User',
        role=create_role(name='倉管人員', code='WAREHOUSE')
    )


def _client_for(user):
    client = APIClient()
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return client


@pytest.fixture
def auth_client(user):
    """Return an authenticated API client."""
    return _client_for(user)


@pytest.fixture
def admin_client(admin_user):
    """Return an authenticated admin API client."""
    return _client_for(admin_user)


@pytest.fixture
def manager_client(manager_user):
    return _client_for(manager_user)


@pytest.fixture
def warehouse_client(warehouse_user):
    return _client_for(warehouse_user)


@pytest.fixture
def create_location(db):
    """Factory fixture to create locations."""
    counter = [0]

    def _create_location(name=None, code=None, **kwargs):
        from apps.locations.models import Location

        counter[0] += 1
        if code is None:
            code = f'L{counter[0]}'
        location, _ = Location.objects.get_or_create(
            code=code,
            defaults={'name': name or f'Location {code}', **kwargs}
        )
        return location
    return _create_location


@pytest.fixture
def location(create_location):
    """Create a default location."""
    return create_location(name='主倉庫', code='L1')


@pytest.fixture
def create_material(db):
    """Factory fixture to create materials."""
    counter = [0]

    def _create_material(name='Test Material', code=None, **kwargs):
        from apps.materials.models import Material
        from decimal import Decimal

        counter[0] += 1
        if code is None:
            code = f'M{counter[0]:04d}'

        material, _ = Material.objects.get_or_create(
            code=code,
            defaults={
                'name': name,
                'unit_price': Decimal('10.00'),
                'status': 'ACTIVE',
                'allow_returns': True,
                **kwargs
            }
        )
        return material
    return _create_material


@pytest.fixture
def material(create_material):
    """Create a default material."""
    return create_material()


@pytest.fixture
def set_stock(db):
    """Factory fixture to seed a stock balance directly."""
    def _set_stock(material, location, quantity):
        from django.db.models import Sum
        from apps.inventory.models import StockBalance

        balance, _ = StockBalance.objects.update_or_create(
            material=material,
            location=location,
            defaults={'quantity': quantity}
        )
        material.current_stock = StockBalance.objects.filter(
            material=material
        ).aggregate(total=Sum('quantity'))['total'] or 0
        material.save(update_fields=['current_stock'])
        return balance
    return _set_stock


@pytest.fixture
def stock_of(db):
    """Return the stored quantity for a material at a location."""
    def _stock_of(material, location):
        from apps.inventory.models import StockBalance
        return StockBalance.objects.filter(
            material=material,
            location=location
        ).values_list('quantity', flat=True).first() or 0
    return _stock_of
