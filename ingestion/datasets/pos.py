"""
Provider of Services (iQIES) dataset loader.

Source: CMS Provider of Services File - Internet Quality Improvement and
Evaluation System. One zip with one POS_File*.csv; each row is a provider
with its address denormalized into the same row.
"""

import asyncio
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from ingestion.base import DatasetLoader
from ingestion.extractors.archive import find_entry, read_header, iter_rows
from ingestion.extractors.http_fetcher import HttpFetcher
from ingestion.transformers.record_mapper import RecordMapper
from ingestion.transformers.dedup import DedupResult, dedup_rows, link_providers
from ingestion.writers.postgres_writer import PostgresBulkWriter
from core.config import settings

logger = logging.getLogger(__name__)

POS_IQIES_URL = (
    "https://data.cms.gov/sites/default/files/dataset_zips/"
    "741d954b3c14b2299052175b44e895f4/"
    "Provider%20of%20Services%20File%20-%20Internet%20Quality%20Improvement"
    "%20and%20Evaluation%20System.zip"
)


class ProviderOfServicesLoader(DatasetLoader):
    """
    Load the POS iQIES file into addresses and providers.

    Pipeline:
    1. Select the POS_File*.csv entry in the archive
    2. Validate the header
    3. Stream rows through the mapper and the address deduplicator
    4. Upsert addresses, link providers to the returned keys, upsert providers
    """

    key = "pos_iqies"
    url = POS_IQIES_URL
    logic_version = 2

    entry_extension = ".csv"
    entry_name_contains = "POS_File"

    def __init__(
        self,
        fetcher: Optional[HttpFetcher] = None,
        writer_factory: Callable[..., PostgresBulkWriter] = PostgresBulkWriter,
        batch_size: Optional[int] = None,
        share_empty_address: Optional[bool] = None,
    ):
        super().__init__(fetcher=fetcher)
        self.writer_factory = writer_factory
        self.batch_size = batch_size or settings.ETL_BATCH_SIZE
        self.share_empty_address = (
            settings.SHARE_EMPTY_ADDRESS if share_empty_address is None else share_empty_address
        )

    def read_entry(self, artifact: Path) -> Tuple[str, DedupResult]:
        """Locate, validate, map and deduplicate the POS entry (blocking)."""
        # --------------------------------------------------
        # PHASE 1: LOCATE AND VALIDATE
        # --------------------------------------------------
        entry = find_entry(artifact, self.entry_extension, self.entry_name_contains)

        mapper = RecordMapper(entry_name=entry)
        mapper.check_header(read_header(artifact, entry))

        # --------------------------------------------------
        # PHASE 2: MAP AND DEDUPLICATE
        # --------------------------------------------------
        logger.info(f"Reading {entry}")
        result = dedup_rows(
            mapper.map_rows(iter_rows(artifact, entry)),
            share_empty_address=self.share_empty_address,
        )
        return entry, result

    async def load(self, artifact: Path, session: AsyncSession) -> Dict[str, Any]:
        # pandas parsing and dedup run off the event loop
        entry, result = await asyncio.to_thread(self.read_entry, artifact)

        # --------------------------------------------------
        # PHASE 3: WRITE ADDRESSES, LINK, WRITE PROVIDERS
        # --------------------------------------------------
        writer = self.writer_factory(session, batch_size=self.batch_size)

        address_ids = await writer.upsert_addresses(result.addresses)
        providers = link_providers(result, address_ids)
        providers_loaded = await writer.upsert_providers(providers)

        stats = {
            "entry": entry,
            "rows_read": result.rows_read,
            "addresses_loaded": len(address_ids),
            "providers_loaded": providers_loaded,
            "duplicate_providers": result.duplicate_providers,
        }
        logger.info(
            f"{self.key}: {stats['rows_read']} rows, {stats['addresses_loaded']} addresses, "
            f"{stats['providers_loaded']} providers"
        )
        return stats
