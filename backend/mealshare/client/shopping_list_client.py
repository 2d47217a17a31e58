"""HTTP client for one shopping list, addressed by share token or by list id."""

import json
from typing import Any, Iterator, Optional

import httpx

from mealshare.logging import get_logger
from mealshare.schemas.shopping_list import GenerateResponse, ShoppingListData

logger = get_logger(__name__)

CLIENT_TIMEOUT = 15.0


class ShoppingListRequestError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ShoppingListNotFound(ShoppingListRequestError):
    pass


class ShoppingListClient:
    """Token mode talks to /api/shared/{token}; id mode sends the identity headers."""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        list_id: Optional[str] = None,
        user_id: Optional[str] = None,
        household_id: Optional[str] = None,
        timeout: float = CLIENT_TIMEOUT,
    ) -> None:
        if (token is None) == (list_id is None):
            raise ValueError("exactly one of token or list_id is required")
        self._base_url = base_url.rstrip("/")
        self.token = token
        self.list_id = list_id
        self._user_id = user_id
        self._household_id = household_id
        self._timeout = timeout

    @classmethod
    def for_household(cls, base_url: str, user_id: str, household_id: str, list_id: str) -> "ShoppingListClient":
        return cls(base_url, list_id=list_id, user_id=user_id, household_id=household_id)

    def _headers(self) -> dict:
        if self.token is not None:
            return {}
        return {"X-User-Id": self._user_id or "", "X-Household-Id": self._household_id or ""}

    def _list_url(self) -> str:
        if self.token is not None:
            return f"{self._base_url}/api/shared/{self.token}"
        return f"{self._base_url}/api/shopping-lists/{self.list_id}"

    def _mutation_url(self, operation: str) -> str:
        if self.token is not None:
            return f"{self._list_url()}/{operation}"
        return f"{self._list_url()}/items/{operation}"

    def _request(self, method: str, url: str, payload: Optional[dict] = None) -> Any:
        try:
            resp = httpx.request(method, url, json=payload, headers=self._headers(), timeout=self._timeout)
        except httpx.HTTPError as exc:
            raise ShoppingListRequestError(f"{method} {url} failed: {exc}") from exc
        if resp.status_code == 404:
            raise ShoppingListNotFound(_detail(resp), status_code=404)
        if resp.is_error:
            raise ShoppingListRequestError(_detail(resp), status_code=resp.status_code)
        return resp.json()

    def get(self) -> dict:
        return self._request("GET", self._list_url())

    def _mutate(self, operation: str, payload: dict) -> ShoppingListData:
        logger.info("client.%s list=%s", operation, self.token or self.list_id)
        return ShoppingListData.model_validate(self._request("POST", self._mutation_url(operation), payload))

    def toggle(self, item: str) -> ShoppingListData:
        return self._mutate("toggle", {"item": item})

    def edit(self, category: str, index: int, value: str) -> ShoppingListData:
        return self._mutate("edit", {"category": category, "index": index, "value": value})

    def add(self, category: str, item: str) -> ShoppingListData:
        return self._mutate("add", {"category": category, "item": item})

    def remove(self, category: str, index: int) -> ShoppingListData:
        return self._mutate("remove", {"category": category, "index": index})

    def generate(self, recipe_selections: list[dict], title: str) -> GenerateResponse:
        """Start a generation job (id mode only); the returned list is PENDING."""
        if self.token is not None:
            raise ValueError("generation needs household credentials")
        data = self._request(
            "POST",
            f"{self._base_url}/api/shopping-lists/generate",
            {"recipe_selections": recipe_selections, "shoppingListTitle": title},
        )
        return GenerateResponse.model_validate(data)

    def events(self) -> Iterator[dict]:
        """Yield live-update payloads from the SSE stream until it closes."""
        url = f"{self._list_url()}/events"
        with httpx.stream("GET", url, headers=self._headers(), timeout=None) as resp:
            if resp.status_code == 404:
                raise ShoppingListNotFound("shopping list not found", status_code=404)
            if resp.is_error:
                raise ShoppingListRequestError(f"GET {url} returned {resp.status_code}", status_code=resp.status_code)
            yield from parse_sse(resp.iter_lines())


def parse_sse(lines: Iterator[str]) -> Iterator[dict]:
    """Decode ``shopping_list`` frames; other event types are skipped."""
    event = None
    data: list[str] = []
    for line in lines:
        if line.startswith("event:"):
            event = line[len("event:"):].strip()
        elif line.startswith("data:"):
            data.append(line[len("data:"):].strip())
        elif not line.strip():
            if event == "shopping_list" and data:
                yield json.loads("\n".join(data))
            event, data = None, []


def _detail(resp: httpx.Response) -> str:
    try:
        detail = resp.json().get("detail")
    except (ValueError, AttributeError):
        detail = None
    return str(detail or f"HTTP {resp.status_code}")
