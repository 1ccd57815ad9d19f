"""
Unit tests for the bulk store writer
"""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from sqlalchemy.dialects import postgresql

from core.exceptions import StoreError
from ingestion.writers.postgres_writer import (
    PG_MAX_BIND_PARAMS,
    PostgresBulkWriter,
    effective_batch_size,
)
from models.address import ADDRESS_COLUMNS
from models.provider import PROVIDER_COLUMNS
from schemas.records import AddressRecord, ProviderRecord


def make_addresses(count):
    return [AddressRecord(street_address=f"{i} MAIN ST", city="DOTHAN", state_code="AL") for i in range(count)]


def make_session():
    mock_session = AsyncMock()
    mock_session.execute = AsyncMock()
    mock_session.commit = AsyncMock()
    mock_session.rollback = AsyncMock()
    return mock_session


class TestEffectiveBatchSize:
    """Test chunk sizing under the bind parameter ceiling"""

    def test_configured_size_used_when_it_fits(self):
        assert effective_batch_size(1000, len(ADDRESS_COLUMNS)) == 1000
        assert effective_batch_size(1000, len(PROVIDER_COLUMNS)) == 1000

    def test_capped_by_parameter_limit(self):
        assert effective_batch_size(100000, len(PROVIDER_COLUMNS)) == PG_MAX_BIND_PARAMS // len(PROVIDER_COLUMNS)
        assert effective_batch_size(100000, 12) == 5461

    def test_minimum_is_one(self):
        assert effective_batch_size(0, 12) == 1
        assert effective_batch_size(10, 100000) == 1

    def test_column_counts(self):
        assert len(ADDRESS_COLUMNS) == 12
        assert len(PROVIDER_COLUMNS) == 42


class TestUpsertAddresses:
    """Test chunking, ordering and transaction handling for addresses"""

    @pytest.mark.asyncio
    async def test_batch_boundary(self):
        """2*bs+1 rows go out as [bs, bs, 1] and keys come back in input order"""
        mock_session = make_session()
        writer = PostgresBulkWriter(mock_session, batch_size=4)
        chunk_sizes = []

        async def fake_chunk(chunk):
            start = sum(chunk_sizes)
            chunk_sizes.append(len(chunk))
            return [100 + start + i for i in range(len(chunk))]

        with patch.object(writer, "_upsert_address_chunk", side_effect=fake_chunk):
            ids = await writer.upsert_addresses(make_addresses(9))

        assert chunk_sizes == [4, 4, 1]
        assert ids == list(range(100, 109))
        mock_session.commit.assert_awaited_once()
        mock_session.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_input(self):
        mock_session = make_session()
        writer = PostgresBulkWriter(mock_session)

        assert await writer.upsert_addresses([]) == []
        mock_session.execute.assert_not_called()
        mock_session.commit.assert_not_called()

    @pytest.mark.asyncio
    async def test_chunk_failure_rolls_back_whole_call(self):
        mock_session = make_session()
        writer = PostgresBulkWriter(mock_session, batch_size=2)
        calls = {"count": 0}

        async def failing_chunk(chunk):
            calls["count"] += 1
            if calls["count"] == 2:
                raise RuntimeError("connection reset")
            return list(range(len(chunk)))

        with patch.object(writer, "_upsert_address_chunk", side_effect=failing_chunk):
            with pytest.raises(StoreError) as exc_info:
                await writer.upsert_addresses(make_addresses(5))

        mock_session.rollback.assert_awaited_once()
        mock_session.commit.assert_not_called()
        assert exc_info.value.context["rows_written_before_failure"] == 2
        assert isinstance(exc_info.value.original_exception, RuntimeError)

    @pytest.mark.asyncio
    async def test_returned_rows_realigned_by_identity(self):
        mock_session = make_session()
        result = MagicMock()
        # RETURNING rows in a different order than sent; NULL parts come back as None
        result.all.return_value = [
            (12, "1 MAIN ST", "DOTHAN", "AL", None),
            (11, "0 MAIN ST", "DOTHAN", "AL", None),
        ]
        mock_session.execute.return_value = result
        writer = PostgresBulkWriter(mock_session)

        rows = [a.dict(include=set(ADDRESS_COLUMNS)) for a in make_addresses(2)]
        ids = await writer._upsert_address_chunk(rows)

        assert ids == [11, 12]

    @pytest.mark.asyncio
    async def test_row_count_mismatch_is_store_error(self):
        mock_session = make_session()
        result = MagicMock()
        result.all.return_value = [(11, "0 MAIN ST", "DOTHAN", "AL", None)]
        mock_session.execute.return_value = result
        writer = PostgresBulkWriter(mock_session)

        with pytest.raises(StoreError):
            await writer.upsert_addresses(make_addresses(2))

        mock_session.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_statement_upserts_on_coalesced_identity(self):
        mock_session = make_session()
        result = MagicMock()
        result.all.return_value = [(1, "0 MAIN ST", "DOTHAN", "AL", None)]
        mock_session.execute.return_value = result
        writer = PostgresBulkWriter(mock_session)

        await writer.upsert_addresses(make_addresses(1))

        stmt = mock_session.execute.call_args[0][0]
        sql = str(stmt.compile(dialect=postgresql.dialect()))
        assert "ON CONFLICT" in sql
        assert "coalesce" in sql.lower()
        assert "RETURNING" in sql
        assert "fips_county_code = excluded.fips_county_code" in sql


class TestUpsertProviders:
    """Test chunking and transaction handling for providers"""

    @pytest.mark.asyncio
    async def test_chunks_and_single_commit(self):
        mock_session = make_session()
        writer = PostgresBulkWriter(mock_session, batch_size=2)
        providers = [ProviderRecord(cms_certification_number=str(i), address_id=i) for i in range(5)]

        written = await writer.upsert_providers(providers)

        assert written == 5
        assert mock_session.execute.await_count == 3
        mock_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failure_raises_store_error(self):
        mock_session = make_session()
        mock_session.execute.side_effect = RuntimeError("deadlock detected")
        writer = PostgresBulkWriter(mock_session)

        with pytest.raises(StoreError) as exc_info:
            await writer.upsert_providers([ProviderRecord(cms_certification_number="X")])

        assert exc_info.value.context["table_name"] == "providers"
        mock_session.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_statement_overwrites_all_fields(self):
        mock_session = make_session()
        writer = PostgresBulkWriter(mock_session)

        await writer.upsert_providers([ProviderRecord(cms_certification_number="X", name="N")])

        stmt = mock_session.execute.call_args[0][0]
        sql = str(stmt.compile(dialect=postgresql.dialect()))
        assert "ON CONFLICT (cms_certification_number) DO UPDATE" in sql
        assert "address_id = excluded.address_id" in sql
