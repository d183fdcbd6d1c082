from .config import DEFAULT_CONFIG
from .session import BrowserSession

__all__ = ["DEFAULT_CONFIG", "BrowserSession"]
