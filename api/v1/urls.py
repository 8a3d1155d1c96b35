"""
API v1 URL Configuration.
"""
from django.urls import path, include

urlpatterns = [
    # Auth & Users
    path('', include('apps.accounts.urls')),

    # Locations
    path('', include('apps.locations.urls')),

    # Materials
    path('', include('apps.materials.urls')),

    # Inventory ledger
    path('', include('apps.inventory.urls')),

    # Returns workflow
    path('', include('apps.returns.urls')),
]
