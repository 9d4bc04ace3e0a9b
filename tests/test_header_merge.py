"""Tests for the layered headers.json merge."""

import pytest

from kuiper.core import find_request
from kuiper.errors import ParseError
from kuiper.headers import collect_overlays, merge_headers, read_headers_file
from tests.conftest import write_json, write_request


class TestMergeHeaders:
    def test_empty_layers(self):
        assert merge_headers([]) == {}

    def test_later_layer_overrides(self):
        result = merge_headers([{"a": "1", "b": "2"}, {"b": "3"}])
        assert result == {"a": "1", "b": "3"}

    def test_null_removes_key(self):
        assert merge_headers([{"a": "1"}, {"a": None}]) == {}

    def test_null_for_absent_key_is_noop(self):
        assert merge_headers([{"a": "1"}, {"b": None}]) == {"a": "1"}

    def test_reintroduced_after_null(self):
        result = merge_headers([{"a": "1"}, {"a": None}, {"a": "5"}])
        assert result == {"a": "5"}

    def test_null_then_unrelated_layers(self):
        result = merge_headers([{"a": "1"}, {"a": None}, {"b": "2"}])
        assert result == {"b": "2"}

    def test_empty_overlay_is_noop(self):
        layers = [{"a": "1"}, {"b": "2"}]
        assert merge_headers([layers[0], {}, layers[1]]) == merge_headers(layers)

    def test_idempotent(self):
        layers = [{"a": "1", "b": "2"}, {"b": None, "c": "3"}, {"a": "4"}]
        assert merge_headers(layers) == merge_headers(layers)

    def test_inputs_not_mutated(self):
        first = {"a": "1"}
        second = {"a": None}
        merge_headers([first, second])
        assert first == {"a": "1"}
        assert second == {"a": None}

    def test_names_match_case_insensitively(self):
        result = merge_headers([{"Accept": "a"}, {"accept": "b"}])
        assert result == {"accept": "b"}

    def test_null_removes_differently_cased_name(self):
        assert merge_headers([{"Accept": "a"}, {"accept": None}]) == {}

    def test_reintroduced_name_uses_new_spelling(self):
        result = merge_headers([{"X-Token": "1"}, {"x-token": None}, {"X-TOKEN": "2"}])
        assert result == {"X-TOKEN": "2"}


class TestReadHeadersFile:
    def test_missing_file_is_empty(self, tmp_path):
        assert read_headers_file(tmp_path / "headers.json") == {}

    def test_reads_strings_and_nulls(self, tmp_path):
        path = write_json(tmp_path / "headers.json", {"a": "1", "b": None})
        assert read_headers_file(path) == {"a": "1", "b": None}

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "headers.json"
        path.write_text("{not json")
        with pytest.raises(ParseError, match="invalid JSON"):
            read_headers_file(path)

    def test_non_object(self, tmp_path):
        path = write_json(tmp_path / "headers.json", ["a", "b"])
        with pytest.raises(ParseError, match="JSON object"):
            read_headers_file(path)

    def test_number_value_rejected(self, tmp_path):
        path = write_json(tmp_path / "headers.json", {"X-Count": 3})
        with pytest.raises(ParseError, match="X-Count"):
            read_headers_file(path)

    def test_invalid_utf8(self, tmp_path):
        path = tmp_path / "headers.json"
        path.write_bytes(b'{"a": "\xff\xfe"}')
        with pytest.raises(ParseError, match="headers.json: invalid UTF-8"):
            read_headers_file(path)

    def test_utf8_values_read(self, tmp_path):
        path = tmp_path / "headers.json"
        path.write_bytes('{"X-Name": "café"}'.encode())
        assert read_headers_file(path) == {"X-Name": "café"}

    def test_duplicate_keys_last_wins(self, tmp_path):
        path = tmp_path / "headers.json"
        path.write_text('{"a": "1", "a": "2"}')
        assert read_headers_file(path) == {"a": "2"}

    def test_collect_keeps_directory_order(self, tmp_path):
        outer = tmp_path / "outer"
        inner = outer / "inner"
        write_json(outer / "headers.json", {"a": "outer"})
        write_json(inner / "headers.json", {"a": "inner"})
        assert collect_overlays([outer, inner]) == [{"a": "outer"}, {"a": "inner"}]


# ── Directory scenarios through find_request ─────────────────────────────


class TestDirectoryScenarios:
    def test_child_overrides_parent(self, project):
        write_json(project / "headers.json", {"a": "1", "b": "2"})
        write_json(project / "child" / "headers.json", {"b": "3"})
        write_request(project / "child" / "req.kuiper")

        request = find_request(project / "child" / "req.kuiper", env={})
        assert request["headers"] == {"a": "1", "b": "3"}

    def test_child_null_removes(self, project):
        write_json(project / "headers.json", {"a": "1"})
        write_json(project / "child" / "headers.json", {"a": None})
        write_request(project / "child" / "req.kuiper")

        request = find_request(project / "child" / "req.kuiper", env={})
        assert request["headers"] == {}

    def test_request_reintroduces_removed(self, project):
        write_json(project / "headers.json", {"a": "1"})
        write_json(project / "child" / "headers.json", {"a": None})
        write_request(project / "child" / "req.kuiper", headers={"a": "5"})

        request = find_request(project / "child" / "req.kuiper", env={})
        assert request["headers"] == {"a": "5"}

    def test_request_null_removes_inherited(self, project):
        write_json(project / "headers.json", {"a": "1", "b": "2"})
        write_request(project / "req.kuiper", headers={"b": None})

        request = find_request(project / "req.kuiper", env={})
        assert request["headers"] == {"a": "1"}

    def test_directory_without_headers_is_skipped(self, project):
        write_json(project / "headers.json", {"a": "1"})
        write_json(project / "x" / "y" / "headers.json", {"b": "2"})
        write_request(project / "x" / "y" / "req.kuiper")

        request = find_request(project / "x" / "y" / "req.kuiper", env={})
        assert request["headers"] == {"a": "1", "b": "2"}

    def test_deepest_directory_wins(self, project):
        write_json(project / "headers.json", {"h": "root"})
        write_json(project / "a" / "headers.json", {"h": "a"})
        write_json(project / "a" / "b" / "headers.json", {"h": "b"})
        write_request(project / "a" / "b" / "req.kuiper")

        request = find_request(project / "a" / "b" / "req.kuiper", env={})
        assert request["headers"] == {"h": "b"}

    def test_sibling_directories_ignored(self, project):
        write_json(project / "other" / "headers.json", {"a": "other"})
        write_request(project / "mine" / "req.kuiper")

        request = find_request(project / "mine" / "req.kuiper", env={})
        assert request["headers"] == {}

    def test_malformed_intermediate_headers(self, project):
        write_json(project / "headers.json", {"a": "1"})
        (project / "mid").mkdir()
        (project / "mid" / "headers.json").write_text("{broken")
        write_request(project / "mid" / "leaf" / "req.kuiper")

        with pytest.raises(ParseError, match="headers.json"):
            find_request(project / "mid" / "leaf" / "req.kuiper", env={})

    def test_headers_above_root_marker_ignored(self, project):
        write_json(project.parent / "headers.json", {"outside": "1"})
        write_request(project / "req.kuiper")

        request = find_request(project / "req.kuiper", env={})
        assert request["headers"] == {}

    def test_repeated_runs_identical(self, project):
        write_json(project / "headers.json", {"a": "1", "b": "2"})
        write_json(project / "c" / "headers.json", {"a": None, "d": "4"})
        write_request(project / "c" / "req.kuiper", headers={"e": "5"})

        first = find_request(project / "c" / "req.kuiper", env={})
        second = find_request(project / "c" / "req.kuiper", env={})
        assert first == second
