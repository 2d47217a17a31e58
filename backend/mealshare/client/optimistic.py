"""Local copy of a shopping list with optimistic edits.

Each edit is applied locally first, then sent to the server; the server's
answer replaces the local state. On failure a toggle or edit is rolled back to
the value it had before the edit, while add and remove re-fetch the whole list
because indexes may have shifted. Failures end up in ``notices`` rather than
propagating to the caller.
"""

import time
from typing import Callable, Optional

from mealshare.client.shopping_list_client import ShoppingListClient, ShoppingListNotFound, ShoppingListRequestError
from mealshare.logging import get_logger
from mealshare.schemas.shopping_list import ShoppingListData
from mealshare.services.shopping import mutations
from mealshare.services.shopping.mutations import ShoppingListError

logger = get_logger(__name__)

GENERATING_MIN_DISPLAY_S = 2.0


class OptimisticShoppingList:
    def __init__(self, client: ShoppingListClient) -> None:
        self.client = client
        self.title: Optional[str] = None
        self.status: Optional[str] = None
        self.data: Optional[ShoppingListData] = None
        self.not_found = False
        self.notices: list[str] = []

    def _apply_snapshot(self, snapshot: dict) -> None:
        self.title = snapshot.get("title", self.title)
        self.status = snapshot.get("status", self.status)
        raw = snapshot.get("shopping_list")
        self.data = ShoppingListData.model_validate(raw) if raw is not None else None

    def _terminal(self) -> None:
        self.not_found = True
        self.data = None
        self.notices.append("The shopping list no longer exists")

    def refresh(self) -> Optional[ShoppingListData]:
        try:
            self._apply_snapshot(self.client.get())
        except ShoppingListNotFound:
            self._terminal()
        except ShoppingListRequestError as exc:
            self.notices.append(f"Could not reload the list: {exc}")
        return self.data

    def apply_remote(self, payload: dict) -> None:
        """Overwrite local state with a live-update payload."""
        if payload.get("event") == "DELETE":
            self._terminal()
            return
        self._apply_snapshot(payload)

    def _run(
        self,
        local: Callable[[ShoppingListData], ShoppingListData],
        remote: Callable[[], ShoppingListData],
        refetch_on_failure: bool,
    ) -> Optional[ShoppingListData]:
        if self.not_found:
            return None
        if self.data is None:
            self.notices.append("The shopping list is not ready yet")
            return None
        previous = self.data
        try:
            self.data = local(previous)
        except ShoppingListError as exc:
            self.notices.append(str(exc))
            return self.data
        try:
            self.data = remote()
        except ShoppingListNotFound:
            self._terminal()
        except ShoppingListRequestError as exc:
            logger.warning("client.mutation_failed status=%s error=%s", exc.status_code, exc)
            self.notices.append(f"Could not save the change: {exc}")
            if refetch_on_failure:
                self.refresh()
            else:
                self.data = previous
        return self.data

    def toggle(self, item: str) -> Optional[ShoppingListData]:
        return self._run(
            lambda data: mutations.toggle_item(data, item),
            lambda: self.client.toggle(item),
            refetch_on_failure=False,
        )

    def edit(self, category: str, index: int, value: str) -> Optional[ShoppingListData]:
        value = value.strip()
        return self._run(
            lambda data: mutations.edit_item(data, category, index, value),
            lambda: self.client.edit(category, index, value),
            refetch_on_failure=False,
        )

    def add(self, category: str, item: str) -> Optional[ShoppingListData]:
        item = item.strip()
        return self._run(
            lambda data: mutations.add_item(data, category, item),
            lambda: self.client.add(category, item),
            refetch_on_failure=True,
        )

    def remove(self, category: str, index: int) -> Optional[ShoppingListData]:
        return self._run(
            lambda data: mutations.remove_item(data, category, index),
            lambda: self.client.remove(category, index),
            refetch_on_failure=True,
        )


class GenerationPlaceholder:
    """Keeps the "generating" state visible for a minimum time, even if the job is faster."""

    def __init__(
        self,
        min_seconds: float = GENERATING_MIN_DISPLAY_S,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.min_seconds = min_seconds
        self._clock = clock
        self.started_at = clock()

    def remaining(self) -> float:
        return max(0.0, self.min_seconds - (self._clock() - self.started_at))

    def visible(self, status: Optional[str]) -> bool:
        return status == "pending" or self.remaining() > 0
