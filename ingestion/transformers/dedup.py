"""
Address deduplication and provider -> address linking.

A single pass over mapped rows collects unique addresses in first-seen order
and records, for every provider, the index of its address in that list.
Once the store returns surrogate keys in the same order, link_providers()
resolves each provider's address_id by index.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional
import logging

from schemas.records import (
    AddressIdentity,
    AddressRecord,
    ProviderRecord,
    ProviderOfServiceRow,
)
from core.exceptions import LinkError

logger = logging.getLogger(__name__)


@dataclass
class DedupResult:
    """
    Output of the dedup pass.

    links[i] is the index into addresses for providers[i], or None when the
    provider's row carried no address.
    """

    providers: List[ProviderRecord] = field(default_factory=list)
    addresses: List[AddressRecord] = field(default_factory=list)
    links: List[Optional[int]] = field(default_factory=list)
    rows_read: int = 0
    duplicate_providers: int = 0


class AddressDeduplicator:
    """
    Streaming deduplicator; feed rows with add(), then call result().

    When share_empty_address is False, rows whose four identity fields are all
    empty get no address. When True they all share one empty address row.
    """

    def __init__(self, share_empty_address: bool = False):
        self.share_empty_address = share_empty_address
        self._result = DedupResult()
        self._address_index: Dict[AddressIdentity, int] = {}
        self._provider_index: Dict[str, int] = {}

    def add(self, row: ProviderOfServiceRow) -> None:
        result = self._result
        result.rows_read += 1

        link = self._address_slot(row.address)

        # A multi-row upsert may not touch the same key twice; the last
        # occurrence wins but keeps the first occurrence's position.
        key = row.provider.cms_certification_number
        position = self._provider_index.get(key)
        if position is not None:
            result.duplicate_providers += 1
            logger.debug(f"Duplicate certification number {key} at line {row.line_number}")
            result.providers[position] = row.provider
            result.links[position] = link
            return

        self._provider_index[key] = len(result.providers)
        result.providers.append(row.provider)
        result.links.append(link)

    def _address_slot(self, address: AddressRecord) -> Optional[int]:
        if not address.has_identity and not self.share_empty_address:
            return None

        identity = address.identity
        index = self._address_index.get(identity)
        if index is None:
            index = len(self._result.addresses)
            self._address_index[identity] = index
            self._result.addresses.append(address)
        return index

    def result(self) -> DedupResult:
        if self._result.duplicate_providers:
            self._drop_orphan_addresses()
        return self._result

    def _drop_orphan_addresses(self) -> None:
        """Remove addresses only a replaced duplicate referred to, keeping order."""
        result = self._result
        used = {link for link in result.links if link is not None}
        if len(used) == len(result.addresses):
            return

        remap: Dict[int, int] = {}
        addresses: List[AddressRecord] = []
        for index, address in enumerate(result.addresses):
            if index in used:
                remap[index] = len(addresses)
                addresses.append(address)

        result.addresses = addresses
        result.links = [remap[link] if link is not None else None for link in result.links]
        self._address_index = {address.identity: i for i, address in enumerate(addresses)}


def dedup_rows(
    rows: Iterable[ProviderOfServiceRow],
    share_empty_address: bool = False,
) -> DedupResult:
    """Run the dedup pass over an iterable of mapped rows."""
    deduplicator = AddressDeduplicator(share_empty_address=share_empty_address)
    for row in rows:
        deduplicator.add(row)

    result = deduplicator.result()
    if result.duplicate_providers:
        logger.warning(
            f"{result.duplicate_providers} duplicate certification numbers collapsed "
            f"(last occurrence kept)"
        )
    logger.info(
        f"Dedup complete: {result.rows_read} rows, {len(result.providers)} providers, "
        f"{len(result.addresses)} unique addresses"
    )
    return result


def link_providers(result: DedupResult, address_ids: List[int]) -> List[ProviderRecord]:
    """
    Set address_id on every provider from the persisted address keys.

    Raises:
        LinkError: address_ids does not line up with result.addresses
    """
    if len(address_ids) != len(result.addresses):
        raise LinkError(
            "Address key count does not match deduplicated addresses",
            context={
                "expected": len(result.addresses),
                "received": len(address_ids),
            },
        )

    for provider, link in zip(result.providers, result.links):
        provider.address_id = address_ids[link] if link is not None else None

    return result.providers
