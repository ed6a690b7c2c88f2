import os
from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request

PUBLIC_ORDER_RATE_LIMIT = os.getenv("PUBLIC_ORDER_RATE_LIMIT", "30/minute")


def branch_or_ip(request: Request) -> str:
    """
    Key function for SlowAPI.
    Groups traffic by the branch a web storefront posts for, falling back to
    the client's IP address when no branch header is sent.
    """
    branch_id = request.headers.get("X-Branch-Id")
    if branch_id:
        return f"branch:{branch_id}:{get_remote_address(request)}"
    return f"ip:{get_remote_address(request)}"

# Initialize the Limiter with our custom key function
limiter = Limiter(key_func=branch_or_ip)
