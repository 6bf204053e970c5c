"""Unit tests for per-model input tables."""

from __future__ import annotations

import pytest

from onkyo_sync.catalog import Catalog, load_catalog
from onkyo_sync.exceptions import InvalidInputIndexError
from onkyo_sync.inputs import InputSource, InputTable, primary_label, resolve_inputs
from onkyo_sync.zones import Zone
from tests.helpers.catalog_data import RECEIVER_MODEL
from tests.helpers.expectations import expect_exception


class TestPrimaryLabel:
    """Tests for comma-qualified label truncation."""

    def test_truncates_at_first_comma(self):
        assert primary_label("video2,cbl/sat") == "video2"

    def test_strips_whitespace(self):
        assert primary_label(" CD , TV/CD") == "CD"

    def test_label_without_comma(self):
        assert primary_label("fm") == "fm"


class TestResolveInputs:
    """Tests for deriving input tables from the catalog."""

    def test_nr686_scenario(self, catalog: Catalog):
        table = resolve_inputs(catalog, RECEIVER_MODEL)

        assert table.sources == (
            InputSource(index=1, code="01", label="VCR/DVR"),
            InputSource(index=2, code="02", label="CBL/SAT"),
        )

    def test_excludes_meta_tokens_and_untagged_entries(self, catalog: Catalog):
        labels = [source.label for source in resolve_inputs(catalog, RECEIVER_MODEL)]
        assert "up" not in labels
        assert "query" not in labels
        assert "source" not in labels

    def test_other_family_gets_its_own_inputs(self, catalog: Catalog):
        table = resolve_inputs(catalog, "TX-SR393")
        assert [source.label for source in table] == ["GAME"]

    def test_unknown_model_yields_empty_table(self, catalog: Catalog):
        table = resolve_inputs(catalog, "TX-UNKNOWN")
        assert len(table) == 0

    def test_zone2_uses_zone2_selector(self, catalog: Catalog):
        table = resolve_inputs(catalog, RECEIVER_MODEL, Zone.ZONE2)
        assert [(source.code, source.label) for source in table] == [("02", "CBL/SAT"), ("24", "fm")]

    def test_duplicate_labels_keep_first(self):
        catalog = Catalog.from_document(
            {
                "commands": {
                    "main": {
                        "SLI": {
                            "name": "input-selector",
                            "values": {
                                "01": {"name": ["video2", "cbl/sat"], "models": "set1"},
                                "05": {"name": ["VIDEO2", "other"], "models": "set1"},
                            },
                        },
                    },
                },
                "modelsets": {"set1": ["TX-NR686"]},
            },
        )
        table = resolve_inputs(catalog, RECEIVER_MODEL)
        assert [source.code for source in table] == ["01"]

    def test_bundled_catalog_nr686(self):
        table = resolve_inputs(load_catalog(), RECEIVER_MODEL)
        labels = [source.label for source in table]

        assert labels == [
            "video1",
            "video2",
            "video3",
            "video4",
            "video6",
            "dvd",
            "phono",
            "cd",
            "fm",
            "am",
            "network",
            "bluetooth",
        ]
        assert len(set(labels)) == len(labels)

    def test_bundled_catalog_strips_curly_quotes(self):
        table = resolve_inputs(load_catalog(), "TX-NR636")
        tuner = next(source for source in table if source.label == "tuner")
        assert tuner.code == "26"

    def test_bundled_catalog_newer_model_gets_streaming_inputs(self):
        table = resolve_inputs(load_catalog(), "TX-NR7100")
        labels = [source.label for source in table]

        assert len(labels) == 14
        assert labels[5:8] == ["dvd", "strm-box", "tv"]
        assert table.get(1).label == "video1"
        assert table.get(2).label == "video2"
        assert table.index_of_label("strm-box") == 7

    @pytest.mark.parametrize("model", ["TX-NR656", "TX-RZ50"])
    def test_bundled_catalog_covers_model(self, model: str):
        catalog = load_catalog()
        reference = [source.label for source in resolve_inputs(catalog, RECEIVER_MODEL)]
        labels = [source.label for source in resolve_inputs(catalog, model)]

        assert labels
        assert set(reference) <= set(labels)


class TestInputTable:
    """Tests for 1-based input table access."""

    def test_get_valid_index(self, input_table: InputTable):
        assert input_table.get(2).label == "CBL/SAT"

    @pytest.mark.parametrize("index", [0, -1, 3])
    def test_get_out_of_range(self, input_table: InputTable, index: int):
        error = expect_exception(input_table.get, InvalidInputIndexError, index)
        assert error.index == index
        assert error.size == 2

    def test_get_rejects_bool(self, input_table: InputTable):
        _ = expect_exception(input_table.get, InvalidInputIndexError, True)

    def test_out_of_range_is_an_index_error(self, input_table: InputTable):
        with pytest.raises(IndexError):
            _ = input_table.get(99)

    def test_index_of_label_ignores_case_and_qualifiers(self, input_table: InputTable):
        assert input_table.index_of_label("cbl/sat") == 2
        assert input_table.index_of_label("VCR/DVR,extra") == 1

    def test_index_of_unknown_label(self, input_table: InputTable):
        assert input_table.index_of_label("phono") is None
