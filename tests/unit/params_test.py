from __future__ import annotations

import pytest

from jsonapi_kit.api.params import parse_query_params
from jsonapi_kit.core.errors import APIError


class TestParseQueryParams:
    def test_plain_keys(self) -> None:
        assert parse_query_params([("search", "ev"), ("sort", "-age")]) == {"search": "ev", "sort": "-age"}

    def test_last_plain_value_wins(self) -> None:
        assert parse_query_params([("sort", "age"), ("sort", "name")]) == {"sort": "name"}

    def test_brackets_nest(self) -> None:
        params = parse_query_params([("filter[age]", "30"), ("page[offset]", "1"), ("page[limit]", "2")])
        assert params == {"filter": {"age": "30"}, "page": {"offset": "1", "limit": "2"}}

    def test_deep_nesting(self) -> None:
        assert parse_query_params([("filter[spouse][name]", "Bob")]) == {"filter": {"spouse": {"name": "Bob"}}}

    def test_empty_brackets_append(self) -> None:
        params = parse_query_params([("filter[id][]", "alice"), ("filter[id][]", "bob")])
        assert params == {"filter": {"id": ["alice", "bob"]}}

    def test_unbracketed_oddities_are_kept_verbatim(self) -> None:
        assert parse_query_params([("[age]", "1"), ("a]b", "2")]) == {"[age]": "1", "a]b": "2"}

    @pytest.mark.parametrize(
        "items",
        [
            [("filter", "x"), ("filter[age]", "1")],
            [("filter[age]", "1"), ("filter", "x")],
            [("filter[id][]", "1"), ("filter[id][x]", "2")],
            [("filter[id][x]", "1"), ("filter[id][]", "2")],
        ],
    )
    def test_conflicts_are_400(self, items: list[tuple[str, str]]) -> None:
        with pytest.raises(APIError) as exc_info:
            parse_query_params(items)
        assert exc_info.value.status == 400

    def test_empty_inner_segment_is_400(self) -> None:
        with pytest.raises(APIError) as exc_info:
            parse_query_params([("filter[][age]", "1")])
        assert exc_info.value.status == 400
