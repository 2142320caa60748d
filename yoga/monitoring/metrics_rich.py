"""
Prometheus metrics for position manager observability.

Organized into: sessions, ranges, settlement, bookkeeping.
"""

from prometheus_client import Counter, Gauge, Histogram, CollectorRegistry
from typing import Optional


class RichMetrics:
    """Metrics for create/reshape sessions."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        reg = registry or CollectorRegistry()
        self.registry = reg

        # === Session Metrics ===
        self.sessions_total = Counter(
            'yoga_sessions_total',
            'Committed sessions',
            labelnames=['operation'],
            registry=reg
        )
        self.session_failures = Counter(
            'yoga_session_failures_total',
            'Aborted sessions',
            labelnames=['operation', 'reason'],
            registry=reg
        )
        self.session_latency_ms = Histogram(
            'yoga_session_latency_ms',
            'Wall time of one create/reshape (milliseconds)',
            labelnames=['operation'],
            buckets=[1, 5, 10, 25, 50, 100, 250, 1000],
            registry=reg
        )

        # === Range Metrics ===
        self.ranges_withdrawn = Counter(
            'yoga_ranges_withdrawn_total',
            'Ranges withdrawn by reshapes',
            registry=reg
        )
        self.ranges_deployed = Counter(
            'yoga_ranges_deployed_total',
            'Ranges deployed by creates and reshapes',
            registry=reg
        )
        self.allocations = Gauge(
            'yoga_position_allocations',
            'Ranges currently held by a position',
            labelnames=['position_id'],
            registry=reg
        )

        # === Settlement Metrics ===
        self.settlement_calls = Counter(
            'yoga_settlement_calls_total',
            'Pull/push calls issued at settlement',
            labelnames=['action'],
            registry=reg
        )

        # === Bookkeeping Metrics ===
        self.ledger_drift = Counter(
            'yoga_ledger_drift_total',
            'Reconciliations where stored ranges diverged from the liquidity ledger',
            registry=reg
        )
        self.audit_findings = Counter(
            'yoga_audit_findings_total',
            'Allocation audit findings',
            labelnames=['kind'],
            registry=reg
        )
