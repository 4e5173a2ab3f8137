"""
Tests for configuration system
"""
import os
import pytest
from config import (
    Config,
    DevelopmentConfig,
    ProductionConfig,
    StoragePolicyError,
    TestingConfig,
    get_config,
    get_storage_mode,
    has_database,
    validate_storage_config,
)


@pytest.mark.unit
class TestBaseConfig:
    """Tests for base configuration"""

    def test_base_config_has_secret_key(self):
        config = Config()
        assert config.SECRET_KEY is not None

    def test_base_config_has_max_content_length(self):
        assert Config.MAX_CONTENT_LENGTH == 16 * 1024 * 1024

    def test_base_config_has_cors_settings(self):
        """Test that base config allows the bridge API key header"""
        assert 'GET' in Config.CORS_METHODS
        assert 'DELETE' in Config.CORS_METHODS
        assert 'X-API-Key' in Config.CORS_ALLOW_HEADERS

    def test_base_config_has_workflow_settings(self):
        assert Config.INVOICE_DUE_DAYS == 30
        assert Config.YEARLY_REMINDER_WINDOW_DAYS == 30
        assert Config.CREW_POLL_INTERVAL_SECONDS == 2

    def test_base_config_has_quickbooks_defaults(self):
        assert Config.QUICKBOOKS_API_BASE.startswith('https://')
        assert Config.QUICKBOOKS_MINOR_VERSION == '65'


@pytest.mark.unit
class TestEnvironmentConfigs:
    """Tests for development, production and testing configuration"""

    def test_development_config(self):
        assert DevelopmentConfig.DEBUG is True
        assert DevelopmentConfig.TESTING is False
        assert DevelopmentConfig.LOG_LEVEL == 'DEBUG'
        assert DevelopmentConfig.CORS_ORIGINS == ['*']

    def test_production_config_is_strict(self):
        assert ProductionConfig.DEBUG is False
        assert ProductionConfig.SESSION_COOKIE_SECURE is True
        assert ProductionConfig.SESSION_COOKIE_HTTPONLY is True
        assert ProductionConfig.PREFERRED_URL_SCHEME == 'https'

    def test_testing_config_is_isolated(self):
        """Test that testing config uses JSON files and no live integrations"""
        assert TestingConfig.TESTING is True
        assert TestingConfig.DATABASE_URL is None
        assert TestingConfig.ENABLE_SCHEDULER is False
        assert TestingConfig.QUICKBOOKS_ACCESS_TOKEN is None
        assert TestingConfig.BRIDGE_API_KEY is None


@pytest.mark.unit
class TestGetConfig:
    """Tests for get_config function"""

    def test_get_config_by_env(self, test_env_vars):
        os.environ['FLASK_ENV'] = 'production'
        assert get_config() == ProductionConfig
        os.environ['FLASK_ENV'] = 'testing'
        assert get_config() == TestingConfig

    def test_get_config_unknown_env_defaults_to_development(self, test_env_vars):
        os.environ['FLASK_ENV'] = 'staging'
        assert get_config() == DevelopmentConfig


@pytest.mark.unit
class TestStorageSelection:
    """Tests for choosing the collection store backend"""

    def test_json_without_database_url(self):
        assert has_database({}) is False
        assert get_storage_mode({'DATABASE_URL': None}) == 'json'

    def test_database_when_url_set(self):
        config = {'DATABASE_URL': 'sqlite:///store.db'}
        assert has_database(config) is True
        assert get_storage_mode(config) == 'database'

    def test_json_store_allowed_outside_production(self, test_env_vars, tmp_path):
        os.environ['FLASK_ENV'] = 'development'
        validate_storage_config({'STORE_FOLDER': str(tmp_path)})

    def test_read_only_store_folder_rejected_in_production(self, test_env_vars, tmp_path, monkeypatch):
        os.environ['FLASK_ENV'] = 'production'
        monkeypatch.setattr('config.os.access', lambda path, mode: False)

        with pytest.raises(StoragePolicyError):
            validate_storage_config({'STORE_FOLDER': str(tmp_path)})
