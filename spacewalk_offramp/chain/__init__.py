from .connection import ChainConnection, EventCallback
from .session import ChainSession

__all__ = ["ChainConnection", "ChainSession", "EventCallback"]
