"""
Async HTTP client a staff terminal uses to talk to the POS cluster.
"""
import os
from decimal import Decimal

import httpx

POS_URL = os.getenv("POS_URL", "http://localhost:8000")
TERMINAL_API_KEY = os.getenv("TERMINAL_API_KEY", "insecure-default-change-me")


class OrderApiError(Exception):
    """Non-2xx answer from the cluster."""

    def __init__(self, status_code: int, message: str, kind: str | None = None):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.kind = kind


def stock_of(product: dict) -> Decimal:
    """Derived availableStock when the payload has it; raw quantity for older payload shapes."""
    value = product.get("availableStock")
    if value is None:
        value = product.get("quantity", 0)
    return Decimal(str(value))


class OrderApiClient:
    def __init__(self, base_url: str = POS_URL, api_key: str = TERMINAL_API_KEY,
                 branch_id: str | None = None, client: httpx.AsyncClient | None = None,
                 timeout: float = 10.0):
        headers = {"X-Terminal-Key": api_key}
        if branch_id:
            headers["X-Branch-Id"] = branch_id
        self.branch_id = branch_id
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._headers = headers

    async def aclose(self):
        await self._client.aclose()

    async def _request(self, method: str, url: str, **kwargs):
        resp = await self._client.request(method, url, headers=self._headers, **kwargs)
        if resp.status_code >= 400:
            try:
                body = resp.json()
            except ValueError:
                body = {}
            message = body.get("message") or body.get("detail") or resp.text
            raise OrderApiError(resp.status_code, str(message), body.get("error"))
        if resp.status_code == 204 or not resp.content:
            return None
        return resp.json()

    # --- ORDERS ---

    async def create_order(self, payload: dict):
        return await self._request("POST", "/orders/", json=payload)

    async def list_orders(self, status: str | None = None):
        params = {"status": status} if status else None
        return await self._request("GET", "/orders/", params=params)

    async def list_web_orders(self):
        return await self._request("GET", "/orders/web")

    async def get_order(self, order_id: str):
        return await self._request("GET", f"/orders/{order_id}")

    async def accept(self, order_id: str):
        return await self._request("PATCH", f"/orders/{order_id}/accept")

    async def reject(self, order_id: str):
        return await self._request("PATCH", f"/orders/{order_id}/reject")

    async def cancel(self, order_id: str):
        return await self._request("PATCH", f"/orders/{order_id}/cancel")

    async def update_items(self, order_id: str, items: list):
        return await self._request("PATCH", f"/orders/{order_id}/items", json={"items": items})

    async def complete(self, order_id: str, payment: dict):
        return await self._request("POST", f"/orders/{order_id}/complete", json=payment)

    # --- DRAFTS ---

    async def list_drafts(self):
        return await self._request("GET", "/orders/drafts")

    async def save_draft(self, payload: dict, draft_id: str | None = None):
        if draft_id:
            return await self._request("PATCH", f"/orders/drafts/{draft_id}", json=payload)
        return await self._request("POST", "/orders/drafts", json=payload)

    async def resume_draft(self, draft_id: str):
        return await self._request("GET", f"/orders/drafts/{draft_id}")

    async def delete_draft(self, draft_id: str):
        return await self._request("DELETE", f"/orders/drafts/{draft_id}")

    async def finalize_draft(self, draft_id: str, payment: dict):
        return await self._request("POST", f"/orders/drafts/{draft_id}/finalize", json=payment)

    # --- PRODUCTS ---

    async def list_products(self, search: str | None = None, exclude_order_id: str | None = None):
        params = {}
        if search:
            params["search"] = search
        if exclude_order_id:
            params["excludeOrderId"] = exclude_order_id
        return await self._request("GET", "/products/", params=params)

    async def get_product(self, product_id: str, exclude_order_id: str | None = None):
        params = {"excludeOrderId": exclude_order_id} if exclude_order_id else None
        return await self._request("GET", f"/products/{product_id}", params=params)

    async def create_product(self, payload: dict):
        return await self._request("POST", "/products/", json=payload)
