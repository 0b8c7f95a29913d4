from .settings import Settings, load_settings
from .tokens import TOKEN_CONFIG, TokenConfig, get_token

__all__ = ["Settings", "load_settings", "TOKEN_CONFIG", "TokenConfig", "get_token"]
