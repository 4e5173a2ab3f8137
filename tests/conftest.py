"""
Pytest configuration and shared fixtures
"""
import os
import sys
import pytest
from datetime import datetime
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from config import TestingConfig  # noqa: E402
from services.collection_store import JSONCollectionStore  # noqa: E402
from services.event_bus import ChangeBus  # noqa: E402
from services.notification_service import CrewNotificationService  # noqa: E402
from services.workflow_service import WorkflowService  # noqa: E402

FIXED_NOW = datetime(2024, 6, 15, 9, 30, 0)


@pytest.fixture
def app_config():
    """Fixture providing test configuration"""
    return TestingConfig


@pytest.fixture
def test_env_vars():
    """Fixture providing test environment variables"""
    original_env = os.environ.copy()

    os.environ['FLASK_ENV'] = 'testing'
    os.environ['SECRET_KEY'] = 'test-secret-key-minimum-32-chars-long-for-security'

    yield

    # Restore original environment
    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def store(tmp_path):
    """JSON collection store in a temp folder"""
    return JSONCollectionStore(str(tmp_path / 'store'))


@pytest.fixture
def bus():
    return ChangeBus()


@pytest.fixture
def notifications(store, bus):
    return CrewNotificationService(store, bus)


@pytest.fixture
def workflow(store, bus, notifications):
    """Workflow service with a fixed clock"""
    return WorkflowService(store, bus, notifications=notifications, clock=lambda: FIXED_NOW)


@pytest.fixture
def flask_app(tmp_path):
    """Fully initialized app on an isolated store"""
    from app_init import create_app

    class IsolatedConfig(TestingConfig):
        SECRET_KEY = 'test-secret-key-minimum-32-chars-long-for-security'
        STORE_FOLDER = str(tmp_path / 'store')
        UPLOAD_FOLDER = str(tmp_path / 'uploads')

    flask_app = create_app(IsolatedConfig)
    yield flask_app
    flask_app.config['SERVICES'].shutdown()


@pytest.fixture
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture
def admin_client(flask_app):
    """Test client signed in with the office code"""
    client = flask_app.test_client()
    response = client.post('/api/auth/login', json={'code': TestingConfig.ADMIN_ACCESS_CODE})
    assert response.status_code == 200
    return client


@pytest.fixture
def crew_client(flask_app):
    """Test client signed in as crew member Kevin Rodriguez"""
    client = flask_app.test_client()
    response = client.post('/api/auth/login', json={
        'code': TestingConfig.CREW_ACCESS_CODE,
        'crewMemberName': 'Kevin Rodriguez',
    })
    assert response.status_code == 200
    return client


@pytest.fixture
def sample_customer():
    """Fixture providing sample customer data"""
    return {
        'name': 'Jane Smith',
        'email': 'jane@example.com',
        'phone': '5551234567',
        'address': '12 Harbor Rd',
    }


@pytest.fixture
def sample_file_data():
    """Fixture providing sample file upload data"""
    return {
        'valid_image_name': 'driveway-before.jpg',
        'invalid_name': 'malicious.exe',
        'path_traversal_name': '../../../etc/passwd'
    }
