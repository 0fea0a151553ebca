"""Cached call sites: prices, certs, population reports, search, trending."""

from .price_service import PriceLookup, PriceService
from .cert_service import CertService, clean_cert_number
from .population_service import PopulationService
from .search_service import SearchService, TrendingService

__all__ = [
    "PriceLookup",
    "PriceService",
    "CertService",
    "clean_cert_number",
    "PopulationService",
    "SearchService",
    "TrendingService",
]
