import json

import pytest
import respx
from httpx import Response

from mealshare.client.optimistic import GenerationPlaceholder, OptimisticShoppingList
from mealshare.client.shopping_list_client import ShoppingListClient, ShoppingListNotFound, parse_sse

BASE_URL = "https://api.example.no"
TOKEN = "6f1c1f0e-8b7e-4a44-9d3e-1f2a3b4c5d6e"
SHARED = f"{BASE_URL}/api/shared/{TOKEN}"


def _snapshot(categories=None, checked=None):
    return {
        "id": "list-1",
        "title": "Ukeshandel",
        "status": "ready",
        "shopping_list": {
            "categories": categories or [{"name": "Meieri", "items": ["melk", "ost"]}],
            "checked_items": checked or [],
        },
    }


def _loaded():
    view = OptimisticShoppingList(ShoppingListClient(BASE_URL, token=TOKEN))
    view.apply_remote(_snapshot())
    return view


def test_client_requires_exactly_one_address():
    with pytest.raises(ValueError):
        ShoppingListClient(BASE_URL)
    with pytest.raises(ValueError):
        ShoppingListClient(BASE_URL, token=TOKEN, list_id="list-1")


@respx.mock
def test_id_mode_sends_identity_headers():
    route = respx.post(f"{BASE_URL}/api/shopping-lists/list-1/items/toggle").mock(
        return_value=Response(200, json={"categories": [], "checked_items": []})
    )
    client = ShoppingListClient.for_household(BASE_URL, user_id="u1", household_id="h1", list_id="list-1")
    client.toggle("melk")
    request = route.calls.last.request
    assert request.headers["X-User-Id"] == "u1"
    assert request.headers["X-Household-Id"] == "h1"
    assert json.loads(request.content) == {"item": "melk"}


@respx.mock
def test_toggle_reconciles_with_server_state():
    server_state = {
        "categories": [{"name": "Meieri", "items": ["melk", "ost", "rømme"]}],
        "checked_items": ["melk"],
    }
    respx.post(f"{SHARED}/toggle").mock(return_value=Response(200, json=server_state))
    view = _loaded()
    result = view.toggle("melk")
    assert result.model_dump() == server_state
    assert view.notices == []


@respx.mock
def test_failed_toggle_rolls_back():
    respx.post(f"{SHARED}/toggle").mock(return_value=Response(500, json={"detail": "boom"}))
    view = _loaded()
    result = view.toggle("melk")
    assert result.checked_items == []
    assert len(view.notices) == 1


@respx.mock
def test_failed_edit_rolls_back():
    respx.post(f"{SHARED}/edit").mock(return_value=Response(409, json={"detail": "index out of range"}))
    view = _loaded()
    view.edit("Meieri", 1, "revet ost")
    assert view.data.categories[0].items == ["melk", "ost"]
    assert "index out of range" in view.notices[0]


@respx.mock
def test_failed_add_refetches_whole_list():
    respx.post(f"{SHARED}/add").mock(return_value=Response(503))
    respx.get(SHARED).mock(
        return_value=Response(200, json=_snapshot(categories=[{"name": "Annet", "items": ["servietter"]}]))
    )
    view = _loaded()
    view.add("Meieri", "yoghurt")
    assert [c.name for c in view.data.categories] == ["Annet"]
    assert view.not_found is False


@respx.mock
def test_not_found_is_terminal():
    respx.post(f"{SHARED}/remove").mock(return_value=Response(404, json={"detail": "Shared shopping list not found"}))
    view = _loaded()
    assert view.remove("Meieri", 0) is None
    assert view.not_found is True
    assert view.toggle("ost") is None


def test_local_validation_failure_skips_server():
    view = _loaded()
    view.remove("Meieri", 7)
    assert view.data.categories[0].items == ["melk", "ost"]
    assert view.notices


def test_apply_remote_overwrites_and_delete_is_terminal():
    view = _loaded()
    view.apply_remote({"event": "UPDATE", "status": "ready", "shopping_list": {"categories": [], "checked_items": []}})
    assert view.data.categories == []
    view.apply_remote({"event": "DELETE", "id": "list-1"})
    assert view.not_found is True


@respx.mock
def test_get_missing_list_raises_not_found():
    respx.get(SHARED).mock(return_value=Response(404, json={"detail": "Shared shopping list not found"}))
    with pytest.raises(ShoppingListNotFound):
        ShoppingListClient(BASE_URL, token=TOKEN).get()


def test_parse_sse_yields_shopping_list_frames():
    lines = [
        "event: subscribed",
        'data: {"channel": "shopping_list:list-1"}',
        "",
        "event: shopping_list",
        'data: {"id": "list-1", "status": "ready"}',
        "",
    ]
    assert list(parse_sse(iter(lines))) == [{"id": "list-1", "status": "ready"}]


def test_generation_placeholder_minimum_display():
    now = [100.0]
    placeholder = GenerationPlaceholder(min_seconds=2.0, clock=lambda: now[0])
    assert placeholder.visible("ready") is True
    now[0] = 101.5
    assert placeholder.remaining() == pytest.approx(0.5)
    now[0] = 102.5
    assert placeholder.visible("ready") is False
    assert placeholder.visible("pending") is True
