"""
VISS Timeline Backend

This package turns the event log of one HIV/population simulation run
into four published time series. Layers are strictly separated:
each layer talks to the next only through the frozen types in contracts/.

LAYER STRUCTURE:
================

1. INGESTION LAYER (ingestion/)
   - Responsibility: Decode event-log lines into typed records
   - Allowed inputs: The simulator's event log, line by line
   - Outputs: EventRecord (BirthEvent, MortalityEvent, TransmissionEvent, IgnoredEvent)
   - MUST NOT: Keep population state, re-sort, or raise on bad lines

2. TEMPORAL LAYER (temporal/)
   - Responsibility: One forward pass of running aggregates, incidence
   - Allowed inputs: EventRecord streams and a start population
   - Outputs: TrackerSnapshot, TimelineBundle
   - MUST NOT: Touch the cache, read the log twice, share state between passes

3. STORAGE LAYER (storage/)
   - Responsibility: Endpoint fallback, publishing, pointer resolution
   - Allowed inputs: TimelineBundle, keys
   - Outputs: PublishResult, stored series bodies
   - MUST NOT: Interpret stored values, raise on an unreachable cache

4. SIMULATION ADAPTER (simulation/)
   - Responsibility: Config rewrite, simulator invocation, report parsing
   - Allowed inputs: Run parameters and seed
   - Outputs: SimulationReport, ReportStats

5. OBSERVABILITY & AUDIT LAYER (observability/)
   - Responsibility: Audit trail and metrics for every layer
   - Allowed inputs: AuditLogEntry / MetricPoint values
   - Outputs: Unified audit log, audit report, metric series
   - MUST NOT: Modify system behavior, filter or interpret events

CONSTRAINTS ENFORCED:
=====================
- Immutability-first: records, points and series are frozen
- Single pass: every aggregate comes out of one scan of the log
- Explicit errors: failures are Error values, never silent defaults
- Best-effort publishing: a cache outage costs keys, never the run
"""
