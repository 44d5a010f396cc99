"""Siteseal - ACME v1 client core for Let's Encrypt certificates over HTTP-01."""

from siteseal.config import Settings
from siteseal.domains import get_all_domains
from siteseal.exceptions import SitesealError
from siteseal.manager import CertificateManager

__all__ = ["CertificateManager", "Settings", "SitesealError", "get_all_domains"]
__version__ = "0.1.0"
