"""Tests for the Jikan theme-song lookup."""

from __future__ import annotations

import httpx
import pytest

from anilist_cli.errors import TransportError, ValidationError
from anilist_cli.jikan import JIKAN_API_BASE, fetch_themes, parse_themes_response


def _http(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestParseThemesResponse:
    def test_valid_payload(self) -> None:
        themes = parse_themes_response(
            {
                "data": {
                    "openings": ['1: "Guren no Yumiya" by Linked Horizon', "  "],
                    "endings": ['1: "Utsukushiki Zankoku na Sekai" by Yoko Hikasa'],
                }
            }
        )
        assert themes.openings == ['1: "Guren no Yumiya" by Linked Horizon']
        assert len(themes.endings) == 1

    @pytest.mark.parametrize(
        "payload",
        [None, [], {"data": None}, {"data": {"openings": "nope", "endings": [1, 2]}}],
    )
    def test_malformed_payload_is_empty(self, payload) -> None:
        themes = parse_themes_response(payload)
        assert themes.openings == []
        assert themes.endings == []


class TestFetchThemes:
    def test_requests_themes_endpoint(self) -> None:
        urls: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            urls.append(str(request.url))
            return httpx.Response(200, json={"data": {"openings": ["op"], "endings": []}})

        with _http(handler) as client:
            themes = fetch_themes(16498, client=client)

        assert urls == [f"{JIKAN_API_BASE}/anime/16498/themes"]
        assert themes.openings == ["op"]

    def test_missing_mal_id_is_validation_error(self) -> None:
        with pytest.raises(ValidationError):
            fetch_themes(0)

    def test_http_error_status(self) -> None:
        with (
            _http(lambda request: httpx.Response(404, json={})) as client,
            pytest.raises(TransportError) as exc_info,
        ):
            fetch_themes(1, client=client)
        assert exc_info.value.status_code == 404

    def test_network_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("offline", request=request)

        with _http(handler) as client, pytest.raises(TransportError):
            fetch_themes(1, client=client)

    def test_invalid_json(self) -> None:
        with (
            _http(lambda request: httpx.Response(200, text="not json")) as client,
            pytest.raises(TransportError, match="invalid JSON"),
        ):
            fetch_themes(1, client=client)
