from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import APIKeyHeader

from .api_key import verify_api_key

# Header every staff terminal sends
terminal_key_header = APIKeyHeader(name="X-Terminal-Key", auto_error=False)
branch_header = APIKeyHeader(name="X-Branch-Id", auto_error=False)


@dataclass
class TerminalContext:
    """Acting branch resolved by the session provider in front of the core."""
    branch_id: Optional[str] = None


async def verify_terminal_key(api_key: str = Depends(terminal_key_header)) -> bool:
    """Dependency to validate requests coming from staff terminals."""
    if not verify_api_key(api_key):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid or missing X-Terminal-Key header"
        )
    return True


async def get_terminal_context(branch_id: Optional[str] = Depends(branch_header)) -> TerminalContext:
    return TerminalContext(branch_id=branch_id or None)
