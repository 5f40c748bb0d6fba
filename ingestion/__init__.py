"""
ETL orchestration engine.

This package contains every component that defines, runs and observes jobs:

Modules:
    registry: Job, DataSource and Transformation catalogs
    alerts: Operator alerts with listeners
    connection_tester: Reachability probes and bounded sample extractions
    executor: Phased job execution (extract -> transform -> load)
    batch: Multi-job execution with success/failure reconciliation
    status: Derived system status snapshot
    locks: Per-DataSource mutual exclusion
    retry: Exponential backoff for transient unit failures
    container: Wiring of all of the above into ETLServices
    cli: etl-orchestrator command line

Subpackages:
    connectors: Memory, file (pandas), API (httpx) and config-only connectors
    transformers: Filter, map, aggregate, join and custom transformations
    loaders: Batched destination writes

Architecture:
    A job references data sources (inputs), transformations (ordered by
    `order`) and destinations (data sources used as outputs). The executor
    runs the three phases strictly in sequence and records a JobRun:

    1. Extract - Probe and read every source, concatenating the records
    2. Transform - Apply enabled transformations in ascending order
    3. Load - Write the working dataset to every destination in batches

    Missing references degrade to warnings. Genuine failures end the run in
    ERROR unless the job's settings.stop_on_error is false.

Usage:
    from ingestion.container import build_services

    services = build_services()
    source = await services.data_sources.create({"name": "seed", "config": {"data": [{"id": 1}]}})
    job = await services.jobs.create({"name": "copy", "sources": [source.id]})
    result = await services.executor.execute_job(job.id)

Error Handling:
    All components raise exceptions from core.exceptions. Pre-flight errors
    are raised to the caller; run errors are recorded on the JobRun and
    reported through alerts.
"""

