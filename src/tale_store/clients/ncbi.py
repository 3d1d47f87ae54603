"""NCBI E-utilities client for accession metadata.

Supports an NCBI API key via the NCBI_API_KEY environment variable, which
raises the rate limit from 3 to 10 requests per second.

Every method returns the raw response text, or None when the request
failed; parsing lives in :mod:`tale_store.ncbi.records`.
"""

from __future__ import annotations

import logging
from typing import Any

from tale_store.clients.base import HTTPClientBase
from tale_store.config import NcbiSettings
from tale_store.errors import RecordParseFailure
from tale_store.ncbi.records import parse_esearch_ids

logger = logging.getLogger(__name__)

EUTILS_BASE_URL = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils"

# Seconds between requests (10 req/sec with key vs 3 req/sec without)
RATE_LIMIT_WITH_KEY = 0.1
RATE_LIMIT_WITHOUT_KEY = 0.34


class NcbiClient(HTTPClientBase):
    """Client for efetch, esearch and esummary.

    Example:
        >>> with NcbiClient() as client:  # doctest: +SKIP
        ...     text = client.fetch_genbank(["CP000967.2"])
    """

    BASE_URL = EUTILS_BASE_URL

    def __init__(
        self,
        api_key: str | None = None,
        timeout: float | None = None,
        user_agent: str | None = None,
        rate_limit_delay: float | None = None,
    ):
        settings = NcbiSettings.from_env()
        self.api_key = api_key if api_key is not None else settings.api_key
        if rate_limit_delay is None:
            rate_limit_delay = RATE_LIMIT_WITH_KEY if self.api_key else RATE_LIMIT_WITHOUT_KEY
        super().__init__(
            rate_limit_delay=rate_limit_delay,
            timeout=timeout if timeout is not None else settings.timeout,
            user_agent=user_agent or settings.user_agent,
        )

    @classmethod
    def from_settings(cls, settings: NcbiSettings) -> NcbiClient:
        return cls(api_key=settings.api_key, timeout=settings.timeout, user_agent=settings.user_agent)

    def _eutil(self, tool: str, params: dict[str, Any]) -> str | None:
        if self.api_key:
            params = {**params, "api_key": self.api_key}
        return self._get_text(f"{self.BASE_URL}/{tool}.fcgi", params)

    def fetch_genbank(self, ids: list[str]) -> str | None:
        """Fetch GenBank flat files for comma-joined nuccore ids."""
        if not ids:
            return None
        return self._eutil("efetch", {"db": "nuccore", "id": ",".join(ids), "rettype": "gb", "retmode": "text"})

    def search_assembly(self, accession: str) -> str | None:
        """Run an assembly esearch for one accession."""
        return self._eutil("esearch", {"db": "assembly", "term": accession, "retmode": "xml"})

    def fetch_assembly_summary(self, uid: str) -> str | None:
        """Fetch the esummary document for an assembly UID."""
        return self._eutil("esummary", {"db": "assembly", "id": uid, "retmode": "xml"})

    def fetch_assembly_summary_for(self, accession: str) -> str | None:
        """Resolve an assembly accession to its UID and fetch the summary."""
        search = self.search_assembly(accession)
        if search is None:
            return None
        try:
            uids = parse_esearch_ids(search)
        except RecordParseFailure as e:
            logger.warning(f"Bad esearch response for {accession}: {e}")
            return None
        if not uids:
            logger.info(f"No assembly UID for {accession}")
            return None
        return self.fetch_assembly_summary(uids[0])

    def fetch_biosamples(self, ids: list[str]) -> str | None:
        """Fetch a BioSampleSet XML document for comma-joined ids."""
        if not ids:
            return None
        return self._eutil("efetch", {"db": "biosample", "id": ",".join(ids), "retmode": "xml"})

    def fetch_taxonomy(self, taxon_id: str) -> str | None:
        """Fetch the taxonomy XML for one taxon id."""
        return self._eutil("efetch", {"db": "taxonomy", "id": taxon_id, "retmode": "xml"})
