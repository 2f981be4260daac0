"""Process-level Prometheus counters for the workflow and its side effects.

Per-scrape gauges (submission counts) are built in the metrics router; these
counters accumulate for the life of the process.
"""

from prometheus_client import CollectorRegistry, Counter

registry = CollectorRegistry()

transitions_total = Counter(
    "solardesk_transitions_total",
    "Accepted submission status transitions",
    ["role", "action"],
    registry=registry,
)
transitions_rejected_total = Counter(
    "solardesk_transitions_rejected_total",
    "Rejected submission status transitions",
    ["role", "action"],
    registry=registry,
)
propagation_updates_total = Counter(
    "solardesk_propagation_updates_total",
    "Satellite collection status updates by outcome",
    ["collection", "result"],
    registry=registry,
)
calculator_fallbacks_total = Counter(
    "solardesk_calculator_fallbacks_total",
    "Metric calculations that fell back to zero because a source failed",
    ["metric"],
    registry=registry,
)
