from .system import router as system_router  # noqa: F401
from .trading import router as trading_router  # noqa: F401
from .trading_control import router as trading_control_router  # noqa: F401

__all__ = ["system_router", "trading_router", "trading_control_router"]
