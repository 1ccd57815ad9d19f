"""
Bulk upsert of addresses and providers into PostgreSQL (idempotent)
"""

from typing import Iterator, List, Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.dialects.postgresql import insert
import logging

from models.address import Address, ADDRESS_COLUMNS, IDENTITY_COLUMNS, identity_conflict_target
from models.provider import Provider, PROVIDER_COLUMNS
from schemas.records import AddressRecord, ProviderRecord, AddressIdentity
from core.config import settings
from core.exceptions import StoreError

logger = logging.getLogger(__name__)

# PostgreSQL wire protocol limit on bind parameters per statement
PG_MAX_BIND_PARAMS = 65535


def effective_batch_size(requested: int, columns_per_row: int) -> int:
    """Largest chunk not above requested whose parameters fit in one statement."""
    if requested <= 0:
        requested = 1
    if columns_per_row <= 0:
        return requested
    return max(1, min(requested, PG_MAX_BIND_PARAMS // columns_per_row))


def chunked(items: Sequence, chunk_size: int) -> Iterator[Sequence]:
    for i in range(0, len(items), chunk_size):
        yield items[i:i + chunk_size]


def _identity_of_row(row) -> AddressIdentity:
    """Identity of a RETURNING row (id, street_address, city, state_code, zip_code)."""
    return tuple(value or "" for value in row[1:5])


class PostgresBulkWriter:
    """
    Write deduplicated records with chunked INSERT ... ON CONFLICT DO UPDATE.

    Ensures:
    - No duplicate rows on repeated runs
    - Every chunk of one call commits or rolls back together
    - upsert_addresses returns one key per input row, in input order
    """

    def __init__(self, db_session: AsyncSession, batch_size: int = None):
        self.db = db_session
        self.batch_size = batch_size or settings.ETL_BATCH_SIZE

    @property
    def address_batch_size(self) -> int:
        return effective_batch_size(self.batch_size, len(ADDRESS_COLUMNS))

    @property
    def provider_batch_size(self) -> int:
        return effective_batch_size(self.batch_size, len(PROVIDER_COLUMNS))

    async def upsert_addresses(self, addresses: List[AddressRecord]) -> List[int]:
        """
        Upsert addresses on the coalesced (street, city, state, zip) identity.

        Rows that already exist get their geographic codes overwritten and
        their existing id returned.

        Returns:
            Surrogate keys aligned with the input list

        Raises:
            StoreError: any chunk failed; the whole call is rolled back
        """
        if not addresses:
            return []

        rows = [address.dict(include=set(ADDRESS_COLUMNS)) for address in addresses]
        batch_size = self.address_batch_size
        address_ids: List[int] = []

        try:
            for number, chunk in enumerate(chunked(rows, batch_size), start=1):
                address_ids.extend(await self._upsert_address_chunk(chunk))
                logger.debug(f"Address batch {number}: upserted {len(chunk)} rows")

            await self.db.commit()

        except StoreError:
            await self.db.rollback()
            raise

        except Exception as e:
            await self.db.rollback()
            raise StoreError(
                "Address upsert failed",
                context={
                    "table_name": Address.__tablename__,
                    "rows": len(rows),
                    "rows_written_before_failure": len(address_ids),
                    "batch_size": batch_size,
                },
                original_exception=e,
            )

        logger.info(f"Upserted {len(address_ids)} addresses")
        return address_ids

    async def _upsert_address_chunk(self, chunk: Sequence[dict]) -> List[int]:
        stmt = insert(Address).values(list(chunk))
        stmt = stmt.on_conflict_do_update(
            index_elements=identity_conflict_target(),
            set_={
                name: stmt.excluded[name]
                for name in ADDRESS_COLUMNS
                if name not in IDENTITY_COLUMNS
            },
        ).returning(Address.id, *(getattr(Address, name) for name in IDENTITY_COLUMNS))

        result = await self.db.execute(stmt)
        returned = result.all()

        if len(returned) != len(chunk):
            raise StoreError(
                "Address upsert returned an unexpected number of rows",
                context={
                    "table_name": Address.__tablename__,
                    "expected": len(chunk),
                    "received": len(returned),
                },
            )

        # RETURNING order is not guaranteed; realign by identity
        ids_by_identity = {_identity_of_row(row): row[0] for row in returned}
        try:
            return [
                ids_by_identity[tuple(row[name] or "" for name in IDENTITY_COLUMNS)]
                for row in chunk
            ]
        except KeyError as e:
            raise StoreError(
                "Address upsert returned an identity that was not sent",
                context={"table_name": Address.__tablename__},
                original_exception=e,
            )

    async def upsert_providers(self, providers: List[ProviderRecord]) -> int:
        """
        Upsert providers on certification number, overwriting every field.

        Returns:
            Number of provider rows written

        Raises:
            StoreError: any chunk failed; the whole call is rolled back
        """
        if not providers:
            return 0

        rows = [provider.dict(include=set(PROVIDER_COLUMNS)) for provider in providers]
        batch_size = self.provider_batch_size
        written = 0

        try:
            for number, chunk in enumerate(chunked(rows, batch_size), start=1):
                await self._upsert_provider_chunk(chunk)
                written += len(chunk)
                logger.debug(f"Provider batch {number}: upserted {len(chunk)} rows")

            await self.db.commit()

        except Exception as e:
            await self.db.rollback()
            raise StoreError(
                "Provider upsert failed",
                context={
                    "table_name": Provider.__tablename__,
                    "rows": len(rows),
                    "rows_written_before_failure": written,
                    "batch_size": batch_size,
                },
                original_exception=e,
            )

        logger.info(f"Upserted {written} providers")
        return written

    async def _upsert_provider_chunk(self, chunk: Sequence[dict]) -> None:
        stmt = insert(Provider).values(list(chunk))
        stmt = stmt.on_conflict_do_update(
            index_elements=[Provider.cms_certification_number],
            set_={
                name: stmt.excluded[name]
                for name in PROVIDER_COLUMNS
                if name != "cms_certification_number"
            },
        )
        await self.db.execute(stmt)
