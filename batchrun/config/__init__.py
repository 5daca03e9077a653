from .loader import load_config
from .types import BatchConfig, ConfigError, UnsupportedConfigFormatError

__all__ = ["load_config", "BatchConfig", "ConfigError", "UnsupportedConfigFormatError"]
