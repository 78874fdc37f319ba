"""
Configuration management and loading.

Handles application settings for quota, analysis, escalation and storage.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml


@dataclass(frozen=True)
class QuotaConfig:
    """Daily scan quota for metered tiers."""
    daily_limit: int = 10
    timezone: str = "UTC"
    
    def __post_init__(self):
        """Validate limit is positive and timezone exists."""
        if self.daily_limit <= 0:
            raise ValueError("daily_limit must be > 0")
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {self.timezone}")


@dataclass(frozen=True)
class AnalysisConfig:
    """Analysis engine settings."""
    model: str = "gpt-4o-mini"
    timeout_seconds: float = 30.0
    
    def __post_init__(self):
        """Validate analysis settings."""
        if not self.model or not self.model.strip():
            raise ValueError("model cannot be empty")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")


@dataclass(frozen=True)
class EscalationConfig:
    """Emergency escalation settings."""
    location_timeout_seconds: float = 5.0
    summary_length: int = 200
    webhook_url: Optional[str] = None
    webhook_timeout_seconds: float = 10.0
    
    def __post_init__(self):
        """Validate escalation settings."""
        if self.location_timeout_seconds <= 0:
            raise ValueError("location_timeout_seconds must be > 0")
        if self.summary_length <= 0:
            raise ValueError("summary_length must be > 0")
        if self.webhook_timeout_seconds <= 0:
            raise ValueError("webhook_timeout_seconds must be > 0")


@dataclass(frozen=True)
class StorageConfig:
    """Storage settings."""
    db_path: str = "scam_guard.db"


@dataclass(frozen=True)
class AppConfig:
    """Complete application configuration."""
    quota: QuotaConfig = field(default_factory=QuotaConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    escalation: EscalationConfig = field(default_factory=EscalationConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)


def default_config() -> AppConfig:
    """Configuration used when no file is given."""
    return AppConfig()


def load_config(path: str) -> AppConfig:
    """Load and validate configuration from YAML file.
    
    Every section is optional and falls back to defaults, but unknown keys
    and invalid values are rejected.
    
    Args:
        path: Path to YAML configuration file
        
    Returns:
        Validated AppConfig object
        
    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    
    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")
    
    if raw_config is None:
        return default_config()
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a dictionary")
    
    allowed_top_keys = {'quota', 'analysis', 'escalation', 'storage'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")
    
    quota_data = _section(raw_config, 'quota', {'daily_limit', 'timezone'})
    analysis_data = _section(raw_config, 'analysis', {'model', 'timeout_seconds'})
    escalation_data = _section(
        raw_config, 'escalation',
        {'location_timeout_seconds', 'summary_length', 'webhook_url', 'webhook_timeout_seconds'}
    )
    storage_data = _section(raw_config, 'storage', {'db_path'})
    
    quota = QuotaConfig(
        daily_limit=_integer(quota_data, 'daily_limit', 10, 'quota'),
        timezone=_string(quota_data, 'timezone', "UTC", 'quota')
    )
    analysis = AnalysisConfig(
        model=_string(analysis_data, 'model', "gpt-4o-mini", 'analysis'),
        timeout_seconds=_number(analysis_data, 'timeout_seconds', 30.0, 'analysis')
    )
    escalation = EscalationConfig(
        location_timeout_seconds=_number(escalation_data, 'location_timeout_seconds', 5.0, 'escalation'),
        summary_length=_integer(escalation_data, 'summary_length', 200, 'escalation'),
        webhook_url=_string(escalation_data, 'webhook_url', None, 'escalation'),
        webhook_timeout_seconds=_number(escalation_data, 'webhook_timeout_seconds', 10.0, 'escalation')
    )
    storage = StorageConfig(
        db_path=_string(storage_data, 'db_path', "scam_guard.db", 'storage')
    )
    
    return AppConfig(quota=quota, analysis=analysis, escalation=escalation, storage=storage)


def _section(raw_config: Dict, name: str, allowed_keys: set) -> Dict:
    """Extract an optional section and reject unknown keys in it."""
    data = raw_config.get(name)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"'{name}' must be a dictionary")
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown keys in {name}: {unknown_keys}")
    return data


def _number(data: Dict, key: str, default: float, path: str) -> float:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ValueError(f"'{key}' in {path} must be a number > 0")
    return float(value)


def _integer(data: Dict, key: str, default: int, path: str) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f"'{key}' in {path} must be an integer > 0")
    return value


def _string(data: Dict, key: str, default: Any, path: str) -> Any:
    value = data.get(key, default)
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"'{key}' in {path} must be a non-empty string")
    return value
