"""
Configuration tests
"""

import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from tagquest.config import Config


ENV_VARS = [
    'DATABASE_PATH', 'TAXONOMY_PATH', 'MAJORITY_THRESHOLD', 'MIN_VENDOR_PRODUCTS',
    'RULE_CERTAINTY_BONUS', 'RULE_CERTAINTY_CAP', 'EDIT_RULE_CERTAINTY', 'EXCLUDED_VENDORS',
    'CHECKPOINT_INTERVAL', 'RECOMPUTE_ON_RETRACT', 'DISCOGS_TOKEN', 'DISCOGS_BASE_URL',
    'DEEZER_BASE_URL', 'HTTP_TIMEOUT', 'DISCOGS_RATE_LIMIT', 'DEEZER_RATE_LIMIT',
    'LOOKUP_CACHE_TTL', 'LOOKUP_CACHE_MAX_ENTRIES', 'VERIFICATION_SAMPLE_SIZE',
    'META_VERIFICATION_VENDORS', 'META_VERIFICATION_PRODUCTS', 'LOG_LEVEL',
    'VERBOSE_LOGGING', 'LOGS_DIR', 'LOG_TO_FILE',
]


def _clear_env(monkeypatch):
    # setenv first so teardown also removes values load_dotenv writes
    for name in ENV_VARS:
        monkeypatch.setenv(name, 'x')
        monkeypatch.delenv(name)


def test_defaults(monkeypatch):
    _clear_env(monkeypatch)
    config = Config()

    assert config.majority_threshold == 50
    assert config.excluded_vendors == ['uDiscover Music', 'Various Artists']
    assert config.recompute_on_retract is False
    assert config.log_to_file is True

    settings = config.get_engine_settings()
    assert settings.rule_certainty_cap == 95
    assert settings.edit_rule_certainty == 85
    assert settings.checkpoint_interval == 10
    assert settings.excluded_vendors == frozenset({'uDiscover Music', 'Various Artists'})
    assert config.validate() == (True, "")


def test_environment_overrides(monkeypatch):
    _clear_env(monkeypatch)
    monkeypatch.setenv('MAJORITY_THRESHOLD', '60')
    monkeypatch.setenv('EXCLUDED_VENDORS', ' Various Artists , ,Soundtrack ')
    monkeypatch.setenv('RECOMPUTE_ON_RETRACT', 'True')
    monkeypatch.setenv('CHECKPOINT_INTERVAL', '5')

    settings = Config().get_engine_settings()

    assert settings.majority_threshold == 60
    assert settings.excluded_vendors == frozenset({'Various Artists', 'Soundtrack'})
    assert settings.recompute_on_retract is True
    assert settings.checkpoint_interval == 5


def test_validate_reports_every_error(monkeypatch):
    _clear_env(monkeypatch)
    monkeypatch.setenv('MAJORITY_THRESHOLD', '150')
    monkeypatch.setenv('CHECKPOINT_INTERVAL', '0')

    is_valid, error = Config().validate()

    assert not is_valid
    assert 'MAJORITY_THRESHOLD' in error
    assert 'CHECKPOINT_INTERVAL' in error


def test_config_file(monkeypatch, tmp_path):
    _clear_env(monkeypatch)
    config_file = tmp_path / 'config.env'
    config_file.write_text("DISCOGS_TOKEN=abc123\nHTTP_TIMEOUT=30\nDISCOGS_RATE_LIMIT=2.5\n")

    config = Config(str(config_file))

    assert config.get_discogs_config() == {
        'token': 'abc123',
        'base_url': 'https://api.discogs.com',
        'timeout': 30,
        'rate_limit': 2.5,
    }
    assert config.get_deezer_config() == {
        'base_url': 'https://api.deezer.com',
        'timeout': 30,
        'rate_limit': 0.1,
    }
