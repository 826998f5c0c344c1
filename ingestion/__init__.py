"""
ETL pipeline components for trending template ingestion.

This package contains all components of the Extract-Transform-Load pipeline:

Modules:
    recovery: Error classifier and recovery engine (retry, skip, fallback,
              checkpoint, notify-only)
    error_store: Durable error and recovery-action stores
    job_ledger: Job lifecycle tracking (scheduled -> running -> completed | failed)
    processing: Per-item processing loop with eligibility filtering
    runner: ETL coordinator for hot-trends, category and stats-refresh jobs
    scheduler: APScheduler integration for the recurring jobs

Subpackages:
    extractors: Video Source Connector for the scraping provider
    transformers: Raw record normalization and content analysis
    loaders: Template store with idempotent upsert operations

Architecture:
    Each job runs three phases:

    1. Extract - Scrape a batch of videos; retries belong to the recovery engine
    2. Transform - Normalize, filter and analyze each video into template sections
    3. Load - Upsert one template per source video

    Per-item failures are offered to the recovery engine first; only
    unrecoverable outcomes abort a batch, and a failed category never stops
    its siblings.

Usage:
    from core.database import async_session_maker
    from ingestion.runner import ETLRunner

    runner = ETLRunner.from_session_factory(async_session_maker)
    result = await runner.run_job("hot-trends")

    print(f"Created {result.success} templates")
"""

__all__ = [
    "ETLRunner",
    "ItemProcessor",
    "RecoveryEngine",
    "JobLedger",
]
