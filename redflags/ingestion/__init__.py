"""Reference dataset ingestion and caching for Red Flags."""

from .base import BaseDataset
from .download import Downloader
from .irs_revocation import IrsRevocationDataset
from .ofac_sdn import OfacSdnDataset
from .store import DatasetStore, REFRESH_TARGETS

__all__ = [
    "BaseDataset",
    "Downloader",
    "IrsRevocationDataset",
    "OfacSdnDataset",
    "DatasetStore",
    "REFRESH_TARGETS",
]
