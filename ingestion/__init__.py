"""
Dataset loading pipeline components.

This package contains every component between a published dataset archive
and the relational store:

Modules:
    base: Abstract DatasetLoader with artifact caching, fingerprinting and cleanup
    runner: LoaderEngine that decides per loader whether work is needed and runs it
    run_state: Durable run state (loader_runs), attempt audit trail and decision rule
    scheduler: APScheduler integration that re-runs the engine on an interval

Subpackages:
    extractors: HTTP download with retry, zip entry lookup and streamed CSV rows
    transformers: Row mapping with field coding, address dedup and provider linking
    writers: Chunked idempotent upserts into PostgreSQL
    datasets: Concrete dataset loaders (Provider of Services / iQIES)

Architecture:
    For each registered loader, in key order:

    1. Fetch - Cache the artifact locally and fingerprint its bytes
    2. Decide - Compare (logic version, fingerprint) with the last successful run
    3. Load - Map rows, dedup addresses, upsert addresses, link, upsert providers
    4. Commit - Remove the artifact, persist run state, update the cache

    A failing loader is logged and reported; the others still run.

Usage:
    from ingestion.runner import LoaderEngine
    from ingestion.datasets.registry import default_loaders

Example:
    engine = await LoaderEngine.create(default_loaders())
    summary = await engine.run()

    print(f"Loaded {summary['succeeded']}, skipped {summary['skipped']}")

Error Handling:
    All components raise exceptions from core.exceptions carrying structured
    context; the engine logs them with to_dict() at the per-loader boundary.
"""

__all__ = [
    "DatasetLoader",
    "DatasetMetadata",
    "LoaderEngine",
    "LoaderScheduler",
    "ProviderOfServicesLoader",
    "RecordMapper",
    "PostgresBulkWriter",
]
