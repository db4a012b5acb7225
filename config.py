import os
import yaml

from settings_schema import AnalyticsSettings, validate_settings

APP_VERSION = "1.0.0"
DEFAULT_CONFIG_PATH = "analytics.yaml"


class YamlConfig:
    """Load and save analytics settings to a YAML file."""

    def __init__(self, path: str | None = None) -> None:
        self.path = path or os.environ.get("ANALYTICS_CONFIG") or DEFAULT_CONFIG_PATH

    def load(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} must contain a mapping")
        return data

    def save(self, data: dict) -> None:
        validate_settings(data)
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump(dict(data), f)


def load_settings(path: str | None = None) -> AnalyticsSettings:
    """Validated settings from ``path``; defaults when the file is missing."""
    return validate_settings(YamlConfig(path).load())
