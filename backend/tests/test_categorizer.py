from mealshare.config import DEFAULT_CATEGORIES
from mealshare.services.llm.item_categorizer import parse_assignments
from mealshare.services.shopping.categorizer import categorize_items, classify_by_keywords, ordered_categories


def test_fallback_category_always_present():
    assert ordered_categories(["Meieri", "Frukt og grønt"]) == ["Meieri", "Frukt og grønt", "Annet"]
    assert ordered_categories(DEFAULT_CATEGORIES) == DEFAULT_CATEGORIES


def test_keywords_pick_specific_aisle_first():
    assert classify_by_keywords("1 ts kyllingbuljong", DEFAULT_CATEGORIES) == "Krydder"
    assert classify_by_keywords("1 boks hakkede tomater", DEFAULT_CATEGORIES) == "Hermetikk"
    assert classify_by_keywords("4 dl melk", DEFAULT_CATEGORIES) == "Meieri"
    assert classify_by_keywords("plantejord", DEFAULT_CATEGORIES) == "Annet"


def test_keywords_match_compound_heads_not_prefixes():
    assert classify_by_keywords("1 melon", DEFAULT_CATEGORIES) == "Frukt og grønt"
    assert classify_by_keywords("2 ss vineddik", DEFAULT_CATEGORIES) == "Tørrvarer"
    assert classify_by_keywords("3 dl hvetemel", DEFAULT_CATEGORIES) == "Tørrvarer"
    assert classify_by_keywords("1 flaske rødvin", DEFAULT_CATEGORIES) == "Drikke"
    assert classify_by_keywords("4 tomater", DEFAULT_CATEGORIES) == "Frukt og grønt"
    assert classify_by_keywords("servietter", DEFAULT_CATEGORIES) == "Annet"


def test_keyword_for_category_household_does_not_use():
    assert classify_by_keywords("4 dl melk", ["Frukt og grønt", "Annet"]) == "Annet"


def test_categories_follow_household_order_and_skip_empty():
    data = categorize_items(["4 dl melk", "2 løk", "servietter"], ["Meieri", "Frukt og grønt", "Drikke"], use_llm=False)
    assert [c.name for c in data.categories] == ["Meieri", "Frukt og grønt", "Annet"]
    assert data.categories[2].items == ["servietter"]
    assert data.checked_items == []


def test_llm_assignments_used_and_unknown_answers_fall_back(monkeypatch):
    from mealshare.services.llm import item_categorizer

    monkeypatch.setattr(
        item_categorizer,
        "assign_categories",
        lambda items, categories: {"servietter": "Tørrvarer"},
    )
    data = categorize_items(["servietter", "4 dl melk"], ["Tørrvarer", "Meieri"], use_llm=True)
    assert [c.name for c in data.categories] == ["Tørrvarer", "Meieri"]


def test_llm_failure_falls_back_to_keywords(monkeypatch):
    from mealshare.services.llm import item_categorizer

    def boom(items, categories):
        raise RuntimeError("rate limited")

    monkeypatch.setattr(item_categorizer, "assign_categories", boom)
    data = categorize_items(["4 dl melk"], ["Meieri"], use_llm=True)
    assert data.categories[0].name == "Meieri"
    assert data.categories[0].items == ["4 dl melk"]


def test_parse_assignments_filters_unknown_items_and_categories():
    raw = '```json\n{"melk": "Meieri", "ost": "Bakeri", "sjokolade": "Annet"}\n```'
    assert parse_assignments(raw, ["melk", "ost"], ["Meieri", "Annet"]) == {"melk": "Meieri"}


def test_parse_assignments_tolerates_garbage():
    assert parse_assignments("I think milk is dairy", ["melk"], ["Meieri"]) == {}
    assert parse_assignments('["melk"]', ["melk"], ["Meieri"]) == {}
