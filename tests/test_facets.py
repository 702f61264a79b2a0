"""Tests for facet label handling and facet counting."""

from __future__ import annotations

from app.facets import (
    FacetGroup,
    FacetValue,
    FilterOptions,
    build_filter_options,
    parse_facet_label,
    strip_count,
)
from conftest import TODAY


def test_parse_facet_label_splits_trailing_count() -> None:
    assert parse_facet_label("Friday (12)") == FacetValue("Friday", 12)
    assert parse_facet_label("2025 - Winter (3)") == FacetValue("2025 - Winter", 3)
    assert parse_facet_label("Slice of Life") == FacetValue("Slice of Life")


def test_strip_count_handles_missing_values() -> None:
    assert strip_count("Action (120)") == "Action"
    assert strip_count(None) is None
    assert strip_count(" (4)") is None


def test_facet_value_formats_round_trip() -> None:
    value = FacetValue("Action", 7)
    assert parse_facet_label(value.format()) == value


def test_build_filter_options_counts_by_classification(sample_records) -> None:
    options = build_filter_options(sample_records, today=TODAY)

    assert options.genres is not None
    assert options.genres.with_counts == ["Comedy (1)", "Slice of Life (1)"]
    assert options.movie_genres is not None
    assert options.movie_genres.labels == ["Action", "Adventure", "Drama"]
    assert options.movie_genres.with_counts[0] == "Action (2)"
    assert options.seasons is not None
    assert options.seasons.with_counts == ["2025 - Fall (1)"]
    assert options.weekdays is not None
    assert options.weekdays.with_counts == ["Friday (1)"]
    assert options.studios is not None
    assert options.studios.with_counts == ["Studio Sun (2)"]
    assert options.movie_special_filters == {"upcoming": 0, "newReleases": 1}
    assert options.stats["totalSeries"] == 1
    assert options.stats["totalMovies"] == 2


def test_filter_options_payload_uses_file_keys(sample_records) -> None:
    payload = build_filter_options(sample_records, today=TODAY).to_payload()

    assert set(payload) >= {"genres", "movieGenres", "seasons", "weekdays", "movieSpecialFilters", "stats"}
    assert payload["weekdays"] == {"withCounts": ["Friday (1)"], "list": ["Friday"]}
    assert FilterOptions.model_validate(payload).weekdays == FacetGroup(
        with_counts=["Friday (1)"], labels=["Friday"]
    )


def test_facet_group_accepts_legacy_named_entries() -> None:
    group = FacetGroup.model_validate(
        {"withCounts": ["Action (2)"], "list": [{"name": "Action", "count": 2}]}
    )

    assert group.labels == ["Action"]
    assert group.options(show_counts=False) == ["Action"]
    assert group.options(show_counts=True) == ["Action (2)"]
