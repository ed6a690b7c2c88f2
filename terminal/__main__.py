"""python -m terminal: headless terminal that logs incoming web orders."""
import asyncio
import os

import structlog

from shared.observability.setup import configure_logging
from .client import POS_URL, OrderApiClient
from .session import TerminalOrderSession
from .socket import OrderSocketListener, realtime_url

logger = structlog.get_logger("terminal")


def _log_alert(order: dict) -> None:
    logger.info("new_web_order", order_id=order["id"], order_number=order.get("orderNumber"),
                customer=order.get("customerName"), total=order.get("total"))


async def run_terminal(base_url: str, branch_id: str | None):
    api = OrderApiClient(base_url=base_url, branch_id=branch_id)
    session = TerminalOrderSession(api, on_alert=_log_alert)
    listener = OrderSocketListener(realtime_url(base_url, branch_id), session)
    try:
        await listener.run()
    finally:
        await api.aclose()


if __name__ == "__main__":
    configure_logging()
    asyncio.run(run_terminal(POS_URL, os.getenv("BRANCH_ID") or None))
