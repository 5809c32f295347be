"""Reconciliation — drive each change event through the build pipeline.

This package provides:
- Actions: what the driver should do after an event (wait or requeue)
- Work queue: one-at-a-time delivery with fixed-delay retries
- Driver: the materialize → package → publish state machine
- Metrics: per-reconcile counters labelled by error kind
"""
