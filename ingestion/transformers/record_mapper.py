"""
Map raw Provider of Services CSV rows into typed records with Pydantic validation
"""

from typing import Dict, Any, Iterable, Iterator, List, Optional
from pydantic import ValidationError
import logging

from schemas.records import (
    AddressRecord,
    ProviderRecord,
    ProviderOfServiceRow,
    OPTIONAL_COLUMNS,
    source_columns,
)
from core.exceptions import MalformedRow

logger = logging.getLogger(__name__)


SOURCE_COLUMNS = frozenset(source_columns(AddressRecord) | source_columns(ProviderRecord))
REQUIRED_COLUMNS = frozenset(SOURCE_COLUMNS - OPTIONAL_COLUMNS)


def normalize_header(columns: Iterable[str]) -> List[str]:
    """Header names are matched stripped and lower-cased."""
    return [str(column).strip().lower() for column in columns]


class RecordMapper:
    """
    Turn one row of named string fields into a ProviderOfServiceRow.

    Handles:
    - Header validation (missing required columns fail the whole file)
    - Sentinel suppression and type coding (see schemas.records)
    - Natural key validation (blank certification number fails the row)
    """

    def __init__(self, entry_name: Optional[str] = None):
        self.entry_name = entry_name

    def check_header(self, columns: Iterable[str]) -> None:
        missing = sorted(REQUIRED_COLUMNS - set(normalize_header(columns)))
        if missing:
            raise MalformedRow(
                f"Missing required columns: {', '.join(missing)}",
                context={
                    "entry": self.entry_name,
                    "missing_columns": missing,
                },
            )

    def map_row(self, row: Dict[str, Any], line_number: int) -> ProviderOfServiceRow:
        """
        Map a single row.

        Raises:
            MalformedRow: certification number missing or blank
        """
        try:
            provider = ProviderRecord.parse_obj(row)
        except ValidationError as e:
            raise MalformedRow(
                f"Invalid provider row at line {line_number}",
                context={
                    "entry": self.entry_name,
                    "line_number": line_number,
                    "errors": [err.get("msg") for err in e.errors()],
                },
                original_exception=e,
            )

        address = AddressRecord.parse_obj(row)
        return ProviderOfServiceRow(line_number=line_number, provider=provider, address=address)

    def map_rows(
        self,
        rows: Iterable[Dict[str, Any]],
        first_line: int = 2,
    ) -> Iterator[ProviderOfServiceRow]:
        """Map rows lazily; line numbers count the header as line 1."""
        for offset, row in enumerate(rows):
            yield self.map_row(row, first_line + offset)
