"""Column filter <-> query parameter encoding."""

from stockdesk.lib.filters import (
    FilterDef, decode_date_range, decode_params_to_filters, encode_date_range,
    encode_filters_to_params, split_multi, strip_outer_quotes
)

DEFS = [
    FilterDef("status", "multi"),
    FilterDef("customer", "select"),
    FilterDef("order_date", "date-range"),
    FilterDef("q", "text"),
]


class TestEncode:

    def test_multi_values_join_in_order(self):
        params = encode_filters_to_params([{"id": "status", "value": ["HAZIR", "KAYIT"]}], DEFS)
        assert params == {"status": "HAZIR|KAYIT"}

    def test_empty_values_clear_the_param(self):
        params = encode_filters_to_params([
            {"id": "status", "value": []},
            {"id": "q", "value": ""},
            {"id": "customer", "value": None},
        ], DEFS)
        assert params == {"status": None, "q": None, "customer": None}

    def test_outer_quotes_are_stripped(self):
        params = encode_filters_to_params([{"id": "q", "value": '"flanş"'}], DEFS)
        assert params == {"q": "flanş"}

    def test_date_range(self):
        params = encode_filters_to_params([{"id": "order_date", "value": ("2025-01-01", "2025-01-31")}], DEFS)
        assert params == {"order_date": "2025-01-01|2025-01-31"}

    def test_unknown_columns_are_skipped_when_defs_given(self):
        assert encode_filters_to_params([{"id": "nope", "value": "x"}], DEFS) == {}


class TestDecode:

    def test_multi_splits_and_drops_empties(self):
        filters = decode_params_to_filters({"status": "HAZIR||KAYIT|"}, DEFS)
        assert filters == [{"id": "status", "value": ["HAZIR", "KAYIT"]}]

    def test_follows_definition_order(self):
        filters = decode_params_to_filters({"q": "abc", "customer": "c-1"}, DEFS)
        assert [f["id"] for f in filters] == ["customer", "q"]

    def test_open_ended_date_range(self):
        filters = decode_params_to_filters({"order_date": "2025-01-01|"}, DEFS)
        assert filters == [{"id": "order_date", "value": ("2025-01-01", None)}]

    def test_encoded_filters_decode_back(self):
        original = [
            {"id": "status", "value": ["HAZIR", "BİTTİ"]},
            {"id": "customer", "value": "c-1"},
            {"id": "order_date", "value": ("2025-01-01", "2025-02-01")},
        ]
        assert decode_params_to_filters(encode_filters_to_params(original, DEFS), DEFS) == original


class TestHelpers:

    def test_split_multi(self):
        assert split_multi(None) == []
        assert split_multi('"a|b"') == ["a", "b"]

    def test_strip_outer_quotes_only_when_paired(self):
        assert strip_outer_quotes('"x"') == "x"
        assert strip_outer_quotes('"x') == '"x'

    def test_date_range_helpers(self):
        assert encode_date_range(None, None) is None
        assert encode_date_range(None, "2025-01-31") == "|2025-01-31"
        assert decode_date_range("|2025-01-31") == (None, "2025-01-31")
        assert decode_date_range(None) == (None, None)
