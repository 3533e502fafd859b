"""Prometheus metrics for the monitoring pipeline.

The metrics are registered on the default registry at import time and
exported by the web server's ``/metrics`` endpoint.
"""

from prometheus_client import Counter, Gauge, Histogram

# Current number of events waiting for analysis
event_queue_size_gauge = Gauge(
    "autoscene_event_queue_size", "Current number of events waiting for analysis"
)
# Number of finalized events kept in history
event_history_size_gauge = Gauge(
    "autoscene_event_history_size", "Number of finalized events kept in history"
)
# Pipeline running state (1 if monitoring, 0 otherwise)
pipeline_running_gauge = Gauge(
    "autoscene_pipeline_running", "Whether monitoring is currently active"
)
# Detection backend plus scene processing latency per tick
detection_latency_histogram = Histogram(
    "autoscene_detection_latency_seconds", "Latency of one detection tick"
)
contexts_processed_counter = Counter(
    "autoscene_contexts_processed_total", "Total number of scene contexts built"
)
events_generated_counter = Counter(
    "autoscene_events_generated_total", "Total number of events generated"
)
events_finalized_counter = Counter(
    "autoscene_events_finalized_total", "Total number of events finalized and published"
)
analysis_failures_counter = Counter(
    "autoscene_analysis_failures_total", "Total number of failed analysis attempts"
)
events_dropped_counter = Counter(
    "autoscene_events_dropped_total", "Events dropped by the queue bound, retry cap or cancellation"
)
