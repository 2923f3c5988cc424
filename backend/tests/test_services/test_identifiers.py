"""
Tests for identifier extraction from markup and API payloads.
"""

from __future__ import annotations

import json

from portal_catalog.services.identifiers import (
    extract_api_items,
    extract_ids,
    ids_from_bare_tokens,
    ids_from_data_attributes,
    ids_from_hrefs,
    ids_from_view_urls,
    is_valid_identifier,
)

ID_A = "3f1c2a9e-8b7d-4e6f-9a1b-2c3d4e5f6a7b"
ID_B = "b2c4d6e8-1a3b-4c5d-8e7f-0a1b2c3d4e5f"
ID_C = "c0ffee00-1234-4abc-9def-001122334455"
PLACEHOLDER = "00000000-0000-0000-0000-000000000000"


class TestIsValidIdentifier:
    def test_accepts_uuid_shapes(self):
        assert is_valid_identifier(ID_A)
        assert is_valid_identifier(ID_A.upper())
        assert is_valid_identifier(f"  {ID_A} ")

    def test_rejects_placeholders_and_garbage(self):
        assert not is_valid_identifier(PLACEHOLDER)
        assert not is_valid_identifier("00000000-1234-4abc-9def-001122334455")
        assert not is_valid_identifier("not-an-id")
        assert not is_valid_identifier(ID_A[:-1])
        assert not is_valid_identifier(None)
        assert not is_valid_identifier(12345)

    def test_zero_runs_inside_real_ids_accepted(self):
        assert is_valid_identifier("12340000-0000-4abc-8def-0123456789ab")
        assert is_valid_identifier("3f1c2a9e-0000-0000-9a1b-2c3d4e5f6a7b")
        assert not is_valid_identifier("ffffffff-ffff-ffff-ffff-ffffffffffff")


class TestPatternClasses:
    def test_view_urls(self):
        html = f'<a href="/ar/datasets/view/{ID_A}">x</a> /datasets/view/{ID_B.upper()}'
        assert ids_from_view_urls(html) == {ID_A, ID_B}

    def test_data_attributes(self):
        html = f"<div data-id='{ID_A}'></div><div data-dataset-id=\"{ID_B}\"></div>"
        assert ids_from_data_attributes(html) == {ID_A, ID_B}

    def test_hrefs_anywhere_in_value(self):
        html = f'<a href="https://portal.example/download?dataset={ID_C}&format=csv">csv</a>'
        assert ids_from_hrefs(html) == {ID_C}

    def test_bare_tokens(self):
        text = f"window.__STATE__ = {{ids: ['{ID_A}', '{ID_B}']}}"
        assert ids_from_bare_tokens(text) == {ID_A, ID_B}

    def test_bare_tokens_ignore_longer_hex_runs(self):
        assert ids_from_bare_tokens(f"{ID_A}-ffff") == set()

    def test_placeholders_excluded_everywhere(self):
        html = f'<a href="/datasets/view/{PLACEHOLDER}" data-id="{PLACEHOLDER}">{PLACEHOLDER}</a>'
        assert extract_ids(html) == set()


class TestExtractIds:
    def test_union_of_all_classes(self):
        html = (
            f'<a href="/ar/datasets/view/{ID_A}">A</a>'
            f'<div data-id="{ID_B}"></div>'
            f"<script>var x = '{ID_C}';</script>"
        )
        assert extract_ids(html) == {ID_A, ID_B, ID_C}

    def test_results_are_lowercase(self):
        assert extract_ids(f"/datasets/view/{ID_A.upper()}") == {ID_A}

    def test_empty_input(self):
        assert extract_ids("") == set()
        assert extract_ids(None) == set()


class TestExtractApiItems:
    def test_data_list_with_titles(self):
        payload = {
            "data": [
                {"id": ID_A, "titleAr": "السكان", "titleEn": "Population"},
                {"id": ID_B, "titleEn": "Trade"},
            ]
        }
        assert extract_api_items(payload) == {ID_A: "السكان", ID_B: "Trade"}

    def test_nested_content_and_alternate_id_keys(self):
        payload = {"data": {"content": [{"datasetId": ID_A, "name": "x"}, {"uuid": ID_B}]}}
        assert extract_api_items(payload) == {ID_A: "x", ID_B: None}

    def test_ckan_package_list_strings(self):
        payload = {"success": True, "result": [ID_A, "not-an-id", ID_B]}
        assert extract_api_items(payload) == {ID_A: None, ID_B: None}

    def test_ckan_search_results(self):
        payload = {"result": {"count": 1, "results": [{"id": ID_C, "title": "Ports"}]}}
        assert extract_api_items(payload) == {ID_C: "Ports"}

    def test_accepts_raw_json_text(self):
        assert extract_api_items(json.dumps({"items": [{"id": ID_A}]})) == {ID_A: None}

    def test_invalid_json_is_empty(self):
        assert extract_api_items("<html>not json</html>") == {}

    def test_skips_placeholders_and_non_dicts(self):
        payload = {"results": [{"id": PLACEHOLDER}, 42, None, {"id": ID_A}]}
        assert extract_api_items(payload) == {ID_A: None}
