"""
Configuration Manager Module
Handles loading and accessing application configuration
"""
import os
from pathlib import Path

from dotenv import load_dotenv

from .models import EngineSettings


DEFAULT_EXCLUDED_VENDORS = 'uDiscover Music,Various Artists'


def _env_bool(name, default):
    return os.getenv(name, default).lower() == 'true'


class Config:
    """Configuration manager for the TagQuest application"""

    def __init__(self, config_file=None):
        """
        Initialize configuration

        Args:
            config_file: Path to .env configuration file
        """
        base_dir = Path(__file__).parent.parent
        if config_file:
            load_dotenv(config_file)
        else:
            # Try to load from default location
            config_path = base_dir / 'config.env'
            if config_path.exists():
                load_dotenv(config_path)

        # Storage
        self.database_path = Path(os.getenv('DATABASE_PATH', './data/tagquest.sqlite3'))
        self.taxonomy_path = Path(os.getenv('TAXONOMY_PATH', str(base_dir / 'taxonomy.json')))

        # Inference engine
        self.majority_threshold = int(os.getenv('MAJORITY_THRESHOLD', 50))
        self.min_vendor_products = int(os.getenv('MIN_VENDOR_PRODUCTS', 2))
        self.rule_certainty_bonus = int(os.getenv('RULE_CERTAINTY_BONUS', 10))
        self.rule_certainty_cap = int(os.getenv('RULE_CERTAINTY_CAP', 95))
        self.edit_rule_certainty = int(os.getenv('EDIT_RULE_CERTAINTY', 85))
        self.excluded_vendors = [
            v.strip() for v in os.getenv('EXCLUDED_VENDORS', DEFAULT_EXCLUDED_VENDORS).split(',')
            if v.strip()
        ]
        self.checkpoint_interval = int(os.getenv('CHECKPOINT_INTERVAL', 10))
        self.recompute_on_retract = _env_bool('RECOMPUTE_ON_RETRACT', 'false')

        # External metadata sources
        self.discogs_token = os.getenv('DISCOGS_TOKEN', '')
        self.discogs_base_url = os.getenv('DISCOGS_BASE_URL', 'https://api.discogs.com')
        self.deezer_base_url = os.getenv('DEEZER_BASE_URL', 'https://api.deezer.com')
        self.http_timeout = int(os.getenv('HTTP_TIMEOUT', 15))
        self.discogs_rate_limit = float(os.getenv('DISCOGS_RATE_LIMIT', 1.0))
        self.deezer_rate_limit = float(os.getenv('DEEZER_RATE_LIMIT', 0.1))
        self.lookup_cache_ttl = int(os.getenv('LOOKUP_CACHE_TTL', 86400))
        self.lookup_cache_max_entries = int(os.getenv('LOOKUP_CACHE_MAX_ENTRIES', 5000))
        self.verification_sample_size = int(os.getenv('VERIFICATION_SAMPLE_SIZE', 5))
        self.meta_verification_vendors = int(os.getenv('META_VERIFICATION_VENDORS', 5))
        self.meta_verification_products = int(os.getenv('META_VERIFICATION_PRODUCTS', 3))

        # Logging Configuration
        self.log_level = os.getenv('LOG_LEVEL', 'INFO')
        self.verbose_logging = _env_bool('VERBOSE_LOGGING', 'false')
        self.logs_dir = Path(os.getenv('LOGS_DIR', './logs'))
        self.log_to_file = _env_bool('LOG_TO_FILE', 'true')

    def validate(self):
        """
        Validate configuration

        Returns:
            tuple: (is_valid, error_message)
        """
        errors = []

        for name in ('majority_threshold', 'rule_certainty_cap', 'edit_rule_certainty'):
            value = getattr(self, name)
            if value < 0 or value > 100:
                errors.append(f"{name.upper()} must be between 0 and 100")

        if self.rule_certainty_bonus < 0:
            errors.append("RULE_CERTAINTY_BONUS must not be negative")

        if self.min_vendor_products <= 0:
            errors.append("MIN_VENDOR_PRODUCTS must be a positive integer")

        if self.checkpoint_interval <= 0:
            errors.append("CHECKPOINT_INTERVAL must be a positive integer")

        if self.http_timeout <= 0:
            errors.append("HTTP_TIMEOUT must be a positive integer")

        if self.discogs_rate_limit < 0 or self.deezer_rate_limit < 0:
            errors.append("Rate limits must not be negative")

        if self.lookup_cache_ttl < 0 or self.lookup_cache_max_entries <= 0:
            errors.append("LOOKUP_CACHE_TTL must be >= 0 and LOOKUP_CACHE_MAX_ENTRIES > 0")

        if self.verification_sample_size <= 0:
            errors.append("VERIFICATION_SAMPLE_SIZE must be a positive integer")

        if errors:
            return False, "; ".join(errors)

        return True, ""

    def get_engine_settings(self):
        """Get inference engine settings as an EngineSettings value"""
        return EngineSettings(
            majority_threshold=self.majority_threshold,
            min_vendor_products=self.min_vendor_products,
            rule_certainty_bonus=self.rule_certainty_bonus,
            rule_certainty_cap=self.rule_certainty_cap,
            edit_rule_certainty=self.edit_rule_certainty,
            excluded_vendors=frozenset(self.excluded_vendors),
            checkpoint_interval=self.checkpoint_interval,
            recompute_on_retract=self.recompute_on_retract,
        )

    def get_discogs_config(self):
        """Get Discogs client configuration as a dictionary"""
        return {
            'token': self.discogs_token,
            'base_url': self.discogs_base_url,
            'timeout': self.http_timeout,
            'rate_limit': self.discogs_rate_limit,
        }

    def get_deezer_config(self):
        """Get Deezer client configuration as a dictionary"""
        return {
            'base_url': self.deezer_base_url,
            'timeout': self.http_timeout,
            'rate_limit': self.deezer_rate_limit,
        }
