"""
Travel Detector - Integration Test Configuration

Pytest fixtures for integration tests against the persistent login stores.
"""

import pytest

from src.shared.identity.login_store_dynamodb import DynamoDBLoginStore
from src.shared.identity.login_store_sqlite import SQLiteLoginStore


@pytest.fixture(params=['sqlite', 'dynamodb'])
def persistent_store(request, sqlite_db_path):
    """Each persistent login store backend, freshly created"""
    if request.param == 'sqlite':
        store = SQLiteLoginStore(db_path=sqlite_db_path)
        yield store
        store.close()
    else:
        table_name = request.getfixturevalue('login_table')
        yield DynamoDBLoginStore(table_name=table_name, region='us-east-1')
