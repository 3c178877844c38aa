# API v1 Package
from estatedesk.api.v1 import (
    auth, users, roles, customers, properties, sell_properties, transactions, emis, documents, reports
)

__all__ = [
    'auth',
    'users',
    'roles',
    'customers',
    'properties',
    'sell_properties',
    'transactions',
    'emis',
    'documents',
    'reports',
]
