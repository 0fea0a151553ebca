"""Grading-company certificate lookups.

Cert pages are slow HTML scrapes and the records behind them almost never
change, so results are cached for a week and concurrent lookups of one cert
share a single scrape. Invalid or unknown certs are raised, never cached.
"""

import logging
import re
from typing import Any, Awaitable, Callable, Dict, Optional

from priceguide.cache.coalescing import RequestCoalescer
from priceguide.cache.keys import GRADING_COMPANIES, cert_key
from priceguide.cache.ttl import CACHE_TTL
from priceguide.errors import CertLookupError, UpstreamFetchError
from priceguide.store import KeyValueStore

logger = logging.getLogger(__name__)

MIN_CERT_DIGITS = 6

# await fetcher(company, cert_number) -> record dict, or None if not found
CertFetcher = Callable[[str, str], Awaitable[Optional[Dict[str, Any]]]]


def clean_cert_number(raw: str) -> str:
    """
    Strip everything but digits from a cert number.

    Raises:
        CertLookupError: If fewer than six digits remain

    Example:
        >>> clean_cert_number("PSA 1234-5678")
        '12345678'
    """
    cleaned = re.sub(r"\D", "", raw or "")
    if len(cleaned) < MIN_CERT_DIGITS:
        raise CertLookupError(cleaned, "Invalid certificate number format")
    return cleaned


class CertService:
    """Service class for certificate verification lookups."""

    def __init__(
        self,
        store: KeyValueStore,
        fetcher: CertFetcher,
        coalescer: Optional[RequestCoalescer] = None,
    ):
        self.store = store
        self.fetcher = fetcher
        self.coalescer = coalescer if coalescer is not None else RequestCoalescer(store)

    async def lookup_cert(self, cert_number: str, company: str = "psa") -> Dict[str, Any]:
        """
        Look up a certificate, scraping the grading company only on a miss.

        Args:
            cert_number: Cert number as typed by the user
            company: "psa", "bgs", "cgc" or "sgc"

        Returns:
            The certificate record

        Raises:
            CertLookupError: Malformed number, unknown company, or no such cert
            UpstreamFetchError: The grading company's site failed
        """
        company = company.lower()
        if company not in GRADING_COMPANIES:
            raise CertLookupError(cert_number, f"Unknown grading company: {company}")

        cleaned = clean_cert_number(cert_number)
        key = cert_key(cleaned, company)

        async def fetch() -> Dict[str, Any]:
            try:
                record = await self.fetcher(company, cleaned)
            except CertLookupError:
                raise
            except Exception as e:
                logger.error(f"{company.upper()} cert lookup error: {e}")
                raise UpstreamFetchError(company, str(e)) from e

            if not record or record.get("isValid") is False:
                raise CertLookupError(cleaned, "Certificate not found")
            return record

        return await self.coalescer.get_or_fetch(key, fetch, ttl=CACHE_TTL.cert)
