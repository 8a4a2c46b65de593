"""Tests for the Reader list API client."""

from unittest.mock import MagicMock

import pytest
import requests

from conftest import NOW, FakeResponse
from reader_printer.exceptions import RateLimited, SourceUnavailable
from reader_printer.sources import ReaderAPI


def make_client(*responses):
    session = MagicMock()
    session.headers = {}
    session.get.side_effect = list(responses)
    return ReaderAPI("secret-token", session=session), session


def page(results, cursor=None):
    return FakeResponse(200, json_data={"count": len(results), "results": results, "nextPageCursor": cursor})


def doc(doc_id, url):
    return {"id": doc_id, "source_url": url, "updated_at": "2026-10-18T11:30:00.000000+00:00",
            "title": f"Title {doc_id}"}


def test_follows_cursor_across_three_pages_in_order():
    client, session = make_client(
        page([doc("1", "https://a.example"), doc("2", "https://b.example")], cursor="c1"),
        page([doc("3", "https://c.example")], cursor="c2"),
        page([doc("4", "https://d.example")], cursor=None),
    )

    documents = client.fetch_updated_since(NOW)

    assert [d.id for d in documents] == ["1", "2", "3", "4"]
    cursors = [call.kwargs["params"].get("pageCursor") for call in session.get.call_args_list]
    assert cursors == [None, "c1", "c2"]


def test_sends_watermark_filters_and_token():
    client, session = make_client(page([]))

    client.fetch_updated_since(NOW, location="later", category="article", with_html_content=True)

    url = session.get.call_args.args[0]
    params = session.get.call_args.kwargs["params"]
    assert url == "https://readwise.io/api/v3/list/"
    assert params == {
        "updatedAfter": "2026-10-18T12:00:00+00:00",
        "location": "later",
        "category": "article",
        "withHtmlContent": "true",
    }
    assert session.headers["Authorization"] == "Token secret-token"


def test_document_fields_are_parsed():
    client, _ = make_client(page([doc("7", "https://a.example/post")]))

    document = client.fetch_updated_since(NOW)[0]

    assert document.source_url == "https://a.example/post"
    assert document.updated_at.isoformat() == "2026-10-18T11:30:00+00:00"
    assert document.identifier == "https://a.example/post"
    assert document.title == "Title 7"


def test_rate_limit_reports_retry_after():
    client, _ = make_client(FakeResponse(429, headers={"Retry-After": "30"}))

    with pytest.raises(RateLimited) as excinfo:
        client.fetch_updated_since(NOW)

    assert excinfo.value.retry_after_seconds == 30


def test_other_errors_are_source_unavailable():
    client, _ = make_client(FakeResponse(503))

    with pytest.raises(SourceUnavailable) as excinfo:
        client.fetch_updated_since(NOW)

    assert excinfo.value.status_code == 503


def test_failure_on_later_page_returns_nothing_and_does_not_retry():
    client, session = make_client(
        page([doc("1", "https://a.example")], cursor="c1"),
        FakeResponse(500),
    )

    with pytest.raises(SourceUnavailable):
        client.fetch_updated_since(NOW)

    assert session.get.call_count == 2


@pytest.mark.parametrize("entry", [
    {"source_url": "https://a.example", "updated_at": "2026-10-18T11:30:00Z"},
    {"id": "1", "source_url": "https://a.example", "updated_at": "last tuesday"},
    {"id": "1", "source_url": "https://a.example", "updated_at": 1760787000},
    "not-an-object",
])
def test_malformed_document_is_source_unavailable(entry):
    client, _ = make_client(page([doc("0", "https://ok.example"), entry]))

    with pytest.raises(SourceUnavailable) as excinfo:
        client.fetch_updated_since(NOW)

    assert "malformed document" in str(excinfo.value)


def test_results_that_are_not_a_list_are_source_unavailable():
    client, _ = make_client(FakeResponse(200, json_data={"results": {"id": "1"}, "nextPageCursor": None}))

    with pytest.raises(SourceUnavailable):
        client.fetch_updated_since(NOW)


def test_transport_error_is_source_unavailable():
    client, _ = make_client(requests.exceptions.ConnectionError("refused"))

    with pytest.raises(SourceUnavailable) as excinfo:
        client.fetch_updated_since(NOW)

    assert excinfo.value.status_code is None


def test_validate_token_accepts_204():
    client, session = make_client(FakeResponse(204))

    assert client.validate_token() is True
    assert session.get.call_args.args[0] == "https://readwise.io/api/v2/auth/"
