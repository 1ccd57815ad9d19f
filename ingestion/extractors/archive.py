"""
Zip archive access for dataset artifacts: entry lookup, streamed CSV rows, fingerprints.
"""

import hashlib
import zipfile
from pathlib import Path
from typing import Any, Dict, Iterator, List, Union

import pandas as pd
import logging

from core.exceptions import ExtractionError, NoMatchingEntry

logger = logging.getLogger(__name__)

HASH_CHUNK_SIZE = 1024 * 1024
CSV_CHUNK_SIZE = 10000
# Undecodable bytes fail the entry rather than being replaced
CSV_ENCODING = "utf-8"

PathLike = Union[str, Path]


def compute_fingerprint(path: PathLike, algorithm: str = "sha256") -> str:
    """Hex digest of the exact file bytes."""
    try:
        digest = hashlib.new(algorithm)
    except ValueError as e:
        raise ExtractionError(
            f"Unsupported hash algorithm: {algorithm}",
            context={"path": str(path), "algorithm": algorithm},
            original_exception=e,
        )

    with open(path, "rb") as fh:
        for block in iter(lambda: fh.read(HASH_CHUNK_SIZE), b""):
            digest.update(block)
    return digest.hexdigest()


def find_entry(archive: PathLike, extension: str, name_contains: str) -> str:
    """
    Name of the first archive entry with the given extension whose name
    contains name_contains.

    Raises:
        NoMatchingEntry: no entry qualifies
        ExtractionError: archive cannot be opened
    """
    extension = extension.lower()
    try:
        with zipfile.ZipFile(archive) as zf:
            names = zf.namelist()
    except (zipfile.BadZipFile, OSError) as e:
        raise ExtractionError(
            "Failed to open archive",
            context={"archive": str(archive)},
            original_exception=e,
        )

    for name in names:
        if name.endswith("/"):
            continue
        if Path(name).suffix.lower() == extension and name_contains in Path(name).name:
            logger.info(f"Selected archive entry {name}")
            return name

    raise NoMatchingEntry(
        f"No {extension} entry containing '{name_contains}' in archive",
        context={
            "archive": str(archive),
            "extension": extension,
            "name_contains": name_contains,
            "entries": len(names),
        },
    )


def _read_csv(handle, **kwargs):
    return pd.read_csv(
        handle,
        dtype=str,
        keep_default_na=False,
        na_filter=False,
        encoding=CSV_ENCODING,
        **kwargs,
    )


def _decode_error(archive: PathLike, entry: str, error: UnicodeDecodeError) -> ExtractionError:
    return ExtractionError(
        f"Entry {entry} is not valid {CSV_ENCODING}",
        context={
            "archive": str(archive),
            "entry": entry,
            "encoding": CSV_ENCODING,
            "reason": error.reason,
        },
        original_exception=error,
    )


def normalize_columns(columns) -> List[str]:
    return [str(column).strip().lower() for column in columns]


def read_header(archive: PathLike, entry: str) -> List[str]:
    """Header of a CSV entry, stripped and lower-cased."""
    with zipfile.ZipFile(archive) as zf:
        with zf.open(entry) as fh:
            try:
                frame = _read_csv(fh, nrows=0)
            except UnicodeDecodeError as e:
                raise _decode_error(archive, entry, e)
    return normalize_columns(frame.columns)


def iter_rows(
    archive: PathLike,
    entry: str,
    chunk_size: int = CSV_CHUNK_SIZE,
) -> Iterator[Dict[str, Any]]:
    """
    Stream rows of a CSV entry as dicts keyed by normalized header name.

    Values are left as strings; empty cells are "" (no NaN conversion).

    Raises:
        ExtractionError: the entry holds bytes that are not valid UTF-8
    """
    with zipfile.ZipFile(archive) as zf:
        with zf.open(entry) as fh:
            try:
                with _read_csv(fh, chunksize=chunk_size) as reader:
                    for chunk in reader:
                        chunk.columns = normalize_columns(chunk.columns)
                        for record in chunk.to_dict(orient="records"):
                            yield record
            except UnicodeDecodeError as e:
                raise _decode_error(archive, entry, e)
