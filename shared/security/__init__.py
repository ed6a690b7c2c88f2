from .api_key import verify_api_key
from .dependencies import TerminalContext, get_terminal_context, verify_terminal_key
from .rate_limiter import PUBLIC_ORDER_RATE_LIMIT, limiter, branch_or_ip

__all__ = [
    "verify_api_key",
    "TerminalContext",
    "get_terminal_context",
    "verify_terminal_key",
    "PUBLIC_ORDER_RATE_LIMIT",
    "limiter",
    "branch_or_ip"
]
