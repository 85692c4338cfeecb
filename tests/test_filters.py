from allevapp.services.filters import apply_filters, matches, text_match

REPORTS = [
    {"id": 1, "title": "Pompa rotta", "description": "Perdita acqua", "status": "open", "urgency": "high", "farm_id": 1},
    {"id": 2, "title": "Luci stalla", "description": None, "status": "closed", "urgency": "low", "farm_id": 2},
    {"id": 3, "title": "Ventilatore", "description": "Rumore pompa", "status": "open", "urgency": "critical", "farm_id": 2},
]

FIELDS = ("title", "description")


def test_blank_search_matches_everything():
    assert apply_filters(REPORTS, search="  ", text_fields=FIELDS) == REPORTS
    assert apply_filters(REPORTS) == REPORTS


def test_search_is_case_insensitive_across_fields():
    result = apply_filters(REPORTS, search="POMPA", text_fields=FIELDS)
    assert [r["id"] for r in result] == [1, 3]


def test_facet_values_are_ored_and_groups_anded():
    result = apply_filters(
        REPORTS,
        facets={"urgency": ["high", "critical"], "farm_id": ["2"]}
    )
    assert [r["id"] for r in result] == [3]


def test_empty_facet_group_is_ignored():
    result = apply_filters(REPORTS, facets={"status": [], "urgency": None})
    assert len(result) == 3


def test_search_and_facets_combine():
    result = apply_filters(REPORTS, search="pompa", text_fields=FIELDS, facets={"status": ["open"], "farm_id": [1]})
    assert [r["id"] for r in result] == [1]


def test_list_fields_are_searched():
    document = {"title": "Certificato", "tags": ["HACCP", "sanitario"]}
    assert text_match(document, "haccp", ("title", "tags"))
    assert not text_match(document, "latte", ("title", "tags"))


def test_boolean_facet_matches_query_string():
    assert matches({"is_important": True}, facets={"is_important": ["true"]})
    assert not matches({"is_important": False}, facets={"is_important": ["true"]})
