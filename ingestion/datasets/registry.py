from typing import List

from ingestion.base import DatasetLoader
from ingestion.datasets.pos import ProviderOfServicesLoader


def default_loaders() -> List[DatasetLoader]:
    """Dataset loaders registered with the engine by the entry points."""
    return [
        ProviderOfServicesLoader(),
    ]
