"""
Abstract base class for dataset loaders with artifact caching and fingerprinting
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from ingestion.extractors.archive import compute_fingerprint
from ingestion.extractors.http_fetcher import HttpFetcher
from core.exceptions import CleanupError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DatasetMetadata:
    """Local artifact of a dataset and the fingerprint of its exact bytes."""

    artifact: Path
    fingerprint: str


class DatasetLoader(ABC):
    """
    Abstract base class for all dataset loaders.

    Responsibilities:
    - Identity (key) and logic version for the run engine
    - Artifact retrieval into the cache directory
    - Content fingerprinting
    - Loading the artifact into the store (subclasses)
    - Artifact cleanup after a successful run

    Subclasses set key, url and logic_version; bump logic_version whenever
    the transformation changes so existing data gets reloaded.
    """

    key: str = ""
    url: str = ""
    logic_version: int = 1
    hash_algorithm: str = "sha256"

    # Archive entry filter
    entry_extension: str = ".csv"
    entry_name_contains: str = ""

    def __init__(self, fetcher: Optional[HttpFetcher] = None):
        self.fetcher = fetcher or HttpFetcher()

    def artifact_path(self, cache_dir: Union[str, Path]) -> Path:
        return Path(cache_dir) / f"{self.key}.zip"

    async def fetch_metadata(self, cache_dir: Union[str, Path]) -> DatasetMetadata:
        """
        Ensure the artifact is cached locally and fingerprint it.

        A file already present in the cache is trusted and not re-downloaded.

        Raises:
            FetchError: download failed
        """
        path = self.artifact_path(cache_dir)

        if path.exists():
            logger.info(f"Using cached artifact {path} for {self.key}")
        else:
            await self.fetcher.download(self.url, path)

        fingerprint = compute_fingerprint(path, self.hash_algorithm)
        logger.info(f"{self.key}: {self.hash_algorithm} {fingerprint}")
        return DatasetMetadata(artifact=path, fingerprint=fingerprint)

    @abstractmethod
    async def load(self, artifact: Path, session: AsyncSession) -> Dict[str, Any]:
        """
        Load the artifact into the store.

        Args:
            artifact: Local path returned by fetch_metadata
            session: Session owned by the engine for this loader

        Returns:
            Load statistics
        """
        pass

    async def cleanup(self, metadata: DatasetMetadata) -> None:
        """Remove the cached artifact."""
        try:
            metadata.artifact.unlink()
            logger.info(f"Removed artifact {metadata.artifact}")
        except FileNotFoundError:
            logger.debug(f"Artifact {metadata.artifact} already removed")
        except OSError as e:
            raise CleanupError(
                "Failed to remove cached artifact",
                context={"loader_key": self.key, "artifact": str(metadata.artifact)},
                original_exception=e,
            )

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} key={self.key} version={self.logic_version}>"
