from redis.exceptions import ConnectionError as RedisConnectionError

from conftest import make_list
from mealshare.services import realtime
from mealshare.services.realtime import format_sse, publish_list_change


def test_publish_goes_to_list_and_household_channels(session, household, redis):
    shopping_list = make_list(session, household.id)
    payload = publish_list_change(shopping_list)
    assert payload["event"] == "UPDATE"
    assert redis.channels() == [f"shopping_list:{shopping_list.id}", f"household:{household.id}:shopping_lists"]
    message = redis.published[0][1]
    assert message["shopping_list"]["categories"][0]["name"] == "Meieri"
    assert message["status"] == "ready"


def test_publish_failure_is_logged_not_raised(session, household, monkeypatch):
    class DownRedis:
        def publish(self, channel, message):
            raise RedisConnectionError("connection refused")

        def close(self):
            pass

    monkeypatch.setattr(realtime, "_redis_client", lambda: DownRedis())
    assert publish_list_change(make_list(session, household.id)) is None


def test_format_sse_frame():
    frame = format_sse("shopping_list", {"id": "1", "title": "Grønnsaker"})
    assert frame == 'event: shopping_list\ndata: {"id": "1", "title": "Grønnsaker"}\n\n'
