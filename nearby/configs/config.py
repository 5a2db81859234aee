# nearby/configs/config.py
import yaml
from pathlib import Path
from functools import lru_cache
from typing import Any, Dict


class Config:
    """
    Static configuration for the provider connectors.
    """

    # This points to nearby/configs/
    CONFIG_DIR = Path(__file__).parent.resolve()
    # This points to the project root
    PROJECT_ROOT = CONFIG_DIR.parent.parent

    PROVIDERS_CONFIG_PATH = CONFIG_DIR / "providers.yaml"

    @classmethod
    @lru_cache
    def load_providers_config(cls) -> dict:
        """Loads the YAML configuration for provider connectors."""
        return load_yaml(cls.PROVIDERS_CONFIG_PATH)

    @classmethod
    def get_provider_config(cls, provider: str) -> Dict[str, Any]:
        """Returns the config block for one provider (empty dict if absent)."""
        providers = cls.load_providers_config().get("providers", {})
        return providers.get(provider) or {}


def load_yaml(path: Path) -> dict:
    """Read a YAML mapping from disk."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing config at {path}")

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Config at {path} must be a mapping, got {type(data).__name__}")
    return data
