"""Tests for the Kindle library service client."""

from unittest.mock import MagicMock

import pytest
import requests

from readtracker.db.schemas import KindleCredentials
from readtracker.kindle.client import KindleLibraryClient, format_authors, parse_library_item
from readtracker.kindle.errors import (
    KindleAuthError,
    KindleConnectionError,
    KindleTimeoutError,
)

SERVICE_URL = "http://kindle.test/api/kindle/sync"


def make_response(status_code: int = 200, body=None) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 400
    if isinstance(body, Exception):
        response.json.side_effect = body
    else:
        response.json.return_value = body
    return response


@pytest.fixture
def http_session() -> MagicMock:
    session = MagicMock(spec=requests.Session)
    session.headers = {}
    return session


@pytest.fixture
def client(http_session: MagicMock) -> KindleLibraryClient:
    return KindleLibraryClient(service_url=SERVICE_URL, timeout=30, session=http_session)


class TestFormatAuthors:
    """Tests for author name formatting."""

    def test_joins_first_and_last_names(self):
        authors = [
            {"firstName": "Terry", "lastName": "Pratchett"},
            {"firstName": "Neil", "lastName": "Gaiman"},
        ]
        assert format_authors(authors) == "Terry Pratchett, Neil Gaiman"

    def test_partial_names(self):
        assert format_authors([{"lastName": "Homer"}, {}]) == "Homer, Unknown"

    def test_empty_or_missing(self):
        assert format_authors([]) == "Unknown"
        assert format_authors(None) == "Unknown"


class TestParseLibraryItem:
    def test_authors_list_and_image_url(self):
        parsed = parse_library_item(
            {
                "asin": "B1",
                "title": "Good Omens",
                "authors": [{"firstName": "Terry", "lastName": "Pratchett"}],
                "imageUrl": "https://img.test/b1.jpg",
                "percentComplete": 12.5,
            }
        )
        assert parsed.author == "Terry Pratchett"
        assert parsed.cover_url == "https://img.test/b1.jpg"
        assert parsed.percent_complete == 13


class TestFetchLibrary:
    """Tests for KindleLibraryClient.fetch_library."""

    def test_posts_credentials_and_proxy(
        self, client: KindleLibraryClient, http_session: MagicMock, credentials: KindleCredentials
    ):
        http_session.post.return_value = make_response(200, {"books": []})

        client.fetch_library(credentials, proxy_url="http://proxy.test")

        http_session.post.assert_called_once()
        args, kwargs = http_session.post.call_args
        assert args[0] == SERVICE_URL
        assert kwargs["timeout"] == 30
        assert kwargs["json"] == {
            "cookies": credentials.cookies,
            "deviceToken": credentials.device_token,
            "tlsClientApiUrl": "http://proxy.test",
        }

    def test_omits_proxy_when_not_set(
        self, client: KindleLibraryClient, http_session: MagicMock, credentials: KindleCredentials
    ):
        http_session.post.return_value = make_response(200, {"books": []})
        client.fetch_library(credentials)
        assert "tlsClientApiUrl" not in http_session.post.call_args.kwargs["json"]

    def test_parses_books(
        self, client: KindleLibraryClient, http_session: MagicMock, credentials: KindleCredentials
    ):
        http_session.post.return_value = make_response(
            200,
            {
                "books": [
                    {
                        "asin": "B1",
                        "title": "Piranesi",
                        "author": "Susanna Clarke",
                        "percentComplete": 45,
                        "lastOpenedAt": "2025-06-14T20:00:00Z",
                    },
                    {"asin": "B2", "title": "No Progress"},
                ]
            },
        )

        books = client.fetch_library(credentials)

        assert [b.asin for b in books] == ["B1", "B2"]
        assert books[0].percent_complete == 45
        assert books[0].last_opened_at is not None
        assert books[1].percent_complete is None
        assert books[1].author == "Unknown"

    def test_skips_malformed_items(
        self, client: KindleLibraryClient, http_session: MagicMock, credentials: KindleCredentials
    ):
        http_session.post.return_value = make_response(
            200,
            {
                "books": [
                    {"title": "No ASIN"},
                    "not an object",
                    {"asin": "B3", "title": "Fine", "percentComplete": "lots"},
                    {"asin": "B4", "title": "Good"},
                ]
            },
        )

        books = client.fetch_library(credentials)
        assert [b.asin for b in books] == ["B4"]

    def test_401_raises_auth_error(
        self, client: KindleLibraryClient, http_session: MagicMock, credentials: KindleCredentials
    ):
        http_session.post.return_value = make_response(401, {"message": "nope"})

        with pytest.raises(KindleAuthError) as exc_info:
            client.fetch_library(credentials)
        assert "cookies and device token" in exc_info.value.message

    def test_service_error_carries_message(
        self, client: KindleLibraryClient, http_session: MagicMock, credentials: KindleCredentials
    ):
        http_session.post.return_value = make_response(
            503, {"message": "Failed to connect to Kindle: proxy down"}
        )

        with pytest.raises(KindleConnectionError) as exc_info:
            client.fetch_library(credentials)
        assert exc_info.value.message == "Failed to connect to Kindle: proxy down"
        assert exc_info.value.status_code == 503

    def test_service_error_without_body(
        self, client: KindleLibraryClient, http_session: MagicMock, credentials: KindleCredentials
    ):
        http_session.post.return_value = make_response(500, ValueError("no json"))

        with pytest.raises(KindleConnectionError) as exc_info:
            client.fetch_library(credentials)
        assert "HTTP 500" in exc_info.value.message

    def test_timeout(
        self, client: KindleLibraryClient, http_session: MagicMock, credentials: KindleCredentials
    ):
        http_session.post.side_effect = requests.exceptions.Timeout()

        with pytest.raises(KindleTimeoutError) as exc_info:
            client.fetch_library(credentials)
        assert "timed out" in exc_info.value.message

    def test_timeout_is_a_connection_error(
        self, client: KindleLibraryClient, http_session: MagicMock, credentials: KindleCredentials
    ):
        http_session.post.side_effect = requests.exceptions.ReadTimeout()

        with pytest.raises(KindleConnectionError):
            client.fetch_library(credentials)

    def test_transport_failure(
        self, client: KindleLibraryClient, http_session: MagicMock, credentials: KindleCredentials
    ):
        http_session.post.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(KindleConnectionError) as exc_info:
            client.fetch_library(credentials)
        assert not isinstance(exc_info.value, KindleTimeoutError)
        assert "refused" in exc_info.value.message

    def test_book_list_not_a_list(
        self, client: KindleLibraryClient, http_session: MagicMock, credentials: KindleCredentials
    ):
        http_session.post.return_value = make_response(200, {"books": 5})

        with pytest.raises(KindleConnectionError) as exc_info:
            client.fetch_library(credentials)
        assert "malformed book list" in exc_info.value.message

    def test_invalid_json(
        self, client: KindleLibraryClient, http_session: MagicMock, credentials: KindleCredentials
    ):
        http_session.post.return_value = make_response(200, ValueError("bad"))

        with pytest.raises(KindleConnectionError):
            client.fetch_library(credentials)
