"""Tests for the SerpAPI Google Maps live search client."""

from unittest.mock import Mock, patch

import pytest

from office_finder.core.errors import ConfigError
from office_finder.vendors import serpapi_maps


def test_build_serpapi_params_requires_query():
    with pytest.raises(ValueError):
        serpapi_maps.build_serpapi_params("  ", "key")

    params = serpapi_maps.build_serpapi_params(" passport office ", "key")
    assert params == {"engine": "google_maps", "q": "passport office", "api_key": "key", "type": "search"}


@patch("office_finder.vendors.serpapi_maps.time.sleep")
@patch("office_finder.vendors.serpapi_maps.GoogleSearch")
def test_fetch_retries_then_succeeds(mock_search, mock_sleep):
    mock_search.return_value.get_dict.side_effect = [{"error": "rate limited"}, {"local_results": [{"title": "PSK"}]}]

    data = serpapi_maps.fetch_from_serpapi("passport office", "key")

    assert data["local_results"][0]["title"] == "PSK"
    assert mock_search.return_value.get_dict.call_count == 2
    assert mock_sleep.call_count == 1


@patch("office_finder.vendors.serpapi_maps.time.sleep")
@patch("office_finder.vendors.serpapi_maps.GoogleSearch")
def test_fetch_raises_after_retry_limit(mock_search, mock_sleep):
    mock_search.return_value.get_dict.return_value = {}

    with pytest.raises(serpapi_maps.SerpApiError):
        serpapi_maps.fetch_from_serpapi("passport office", "key")

    assert mock_search.return_value.get_dict.call_count == serpapi_maps.RETRY_LIMIT + 1


def test_extract_items_handles_nested_shapes():
    assert serpapi_maps.extract_items({"local_results": [{"title": "A"}, "junk"]}) == [{"title": "A"}]
    assert serpapi_maps.extract_items({"local_results": {"places": [{"title": "B"}]}}) == [{"title": "B"}]
    assert serpapi_maps.extract_items({"place_results": {"title": "C"}}) == [{"title": "C"}]
    assert serpapi_maps.extract_items({}) == []


@patch("office_finder.vendors.serpapi_maps.fetch_from_serpapi")
def test_search_builds_query_and_truncates(mock_fetch):
    mock_fetch.return_value = {"local_results": [{"title": str(i)} for i in range(8)]}

    items = serpapi_maps.SerpApiMapsSearch("key", max_results=3).search("passport renewal", "Kothrud", "Pune", "Maharashtra")

    assert [item["title"] for item in items] == ["0", "1", "2"]
    mock_fetch.assert_called_once_with("passport renewal office near Kothrud, Pune, Maharashtra", "key")


def test_search_requires_api_key():
    with pytest.raises(ConfigError):
        serpapi_maps.SerpApiMapsSearch("")


@patch("office_finder.vendors.serpapi_maps.fetch_from_serpapi", Mock(return_value={"local_results": []}))
def test_search_with_no_items_returns_empty_list():
    assert serpapi_maps.SerpApiMapsSearch("key").search("passport renewal", "", "Pune", "") == []
