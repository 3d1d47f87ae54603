"""Tests for the NCBI E-utilities client."""

import os
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import requests

from tale_store.clients.ncbi import (
    EUTILS_BASE_URL,
    RATE_LIMIT_WITH_KEY,
    RATE_LIMIT_WITHOUT_KEY,
    NcbiClient,
)
from tale_store.config import API_KEY_ENV, NcbiSettings


def _response(status: int = 200, text: str = "") -> MagicMock:
    response = MagicMock()
    response.status_code = status
    response.text = text
    return response


@pytest.fixture
def client() -> NcbiClient:
    return NcbiClient(api_key="", rate_limit_delay=0.0)


class TestNcbiClientInit:
    """Tests for client construction."""

    def test_rate_limit_from_key(self) -> None:
        """Test the faster rate limit when an API key is set."""
        assert NcbiClient(api_key="secret").rate_limit_delay == RATE_LIMIT_WITH_KEY
        assert NcbiClient(api_key="").rate_limit_delay == RATE_LIMIT_WITHOUT_KEY

    def test_api_key_from_env(self) -> None:
        """Test reading NCBI_API_KEY from the environment."""
        with patch.dict(os.environ, {API_KEY_ENV: "from-env"}):
            assert NcbiClient().api_key == "from-env"

    def test_from_settings(self, tmp_path: Path) -> None:
        """Test building a client from settings."""
        settings = NcbiSettings(cache_dir=tmp_path, timeout=3.0, api_key="k", user_agent="agent/1")

        client = NcbiClient.from_settings(settings)

        assert client.timeout == 3.0
        assert client.api_key == "k"
        assert client._session.headers["User-Agent"] == "agent/1"


class TestNcbiClientRequests:
    """Tests for request construction with a mocked session."""

    def test_fetch_genbank_params(self, client: NcbiClient) -> None:
        """Test the efetch call for several ids."""
        with patch.object(client._session, "get", return_value=_response(text="LOCUS")) as get:
            assert client.fetch_genbank(["CP000967.2", "AB000001.1"]) == "LOCUS"

        url = get.call_args.args[0]
        params = get.call_args.kwargs["params"]
        assert url == f"{EUTILS_BASE_URL}/efetch.fcgi"
        assert params["db"] == "nuccore"
        assert params["id"] == "CP000967.2,AB000001.1"
        assert params["rettype"] == "gb"
        assert "api_key" not in params

    def test_api_key_param(self) -> None:
        """Test that the API key is sent when configured."""
        client = NcbiClient(api_key="secret", rate_limit_delay=0.0)

        with patch.object(client._session, "get", return_value=_response(text="<x/>")) as get:
            client.fetch_taxonomy("64187")

        assert get.call_args.kwargs["params"]["api_key"] == "secret"

    def test_empty_ids(self, client: NcbiClient) -> None:
        """Test that no ids means no request."""
        with patch.object(client._session, "get") as get:
            assert client.fetch_genbank([]) is None
            assert client.fetch_biosamples([]) is None

        get.assert_not_called()

    def test_http_error(self, client: NcbiClient) -> None:
        """Test that a non-200 status comes back as None."""
        with patch.object(client._session, "get", return_value=_response(status=500)):
            assert client.fetch_taxonomy("1") is None

    def test_timeout(self, client: NcbiClient) -> None:
        """Test that a timeout comes back as None."""
        with patch.object(client._session, "get", side_effect=requests.Timeout()):
            assert client.fetch_taxonomy("1") is None

    @patch("tale_store.clients.base.time.sleep")
    def test_retry_on_429(self, sleep: MagicMock, client: NcbiClient) -> None:
        """Test a retry after a rate-limit response."""
        responses = [_response(status=429), _response(text="<TaxaSet/>")]

        with patch.object(client._session, "get", side_effect=responses):
            assert client.fetch_taxonomy("1") == "<TaxaSet/>"

        sleep.assert_called_with(1)

    def test_assembly_summary_for(
        self, client: NcbiClient, assembly_esearch_xml: str, assembly_summary_xml: str
    ) -> None:
        """Test resolving an accession to a UID before esummary."""
        with (
            patch.object(client, "search_assembly", return_value=assembly_esearch_xml),
            patch.object(client, "fetch_assembly_summary", return_value=assembly_summary_xml) as summary,
        ):
            assert client.fetch_assembly_summary_for("GCF_000019585.2") == assembly_summary_xml

        summary.assert_called_once_with("123456")

    def test_assembly_summary_no_uid(self, client: NcbiClient) -> None:
        """Test an esearch with no hits."""
        empty = "<eSearchResult><Count>0</Count><IdList/></eSearchResult>"
        with (
            patch.object(client, "search_assembly", return_value=empty),
            patch.object(client, "fetch_assembly_summary") as summary,
        ):
            assert client.fetch_assembly_summary_for("GCF_999") is None

        summary.assert_not_called()


class TestNcbiClientIntegration:
    """Integration tests against the live E-utilities API.

    Skipped by default. Run with: pytest -m integration
    """

    @pytest.mark.integration
    def test_fetch_pxo99a_record(self) -> None:
        """Test fetching the PXO99A chromosome header."""
        with NcbiClient() as client:
            text = client.fetch_genbank(["CP000967.2"])

        assert text is not None
        assert "ACCESSION   CP000967" in text
