from prometheus_client import Counter, Histogram, REGISTRY


# we check if they are already registered to avoid errors during hot reloads or test runs
def get_or_create_metric(name, documentation, metric_type, **kwargs):
    try:
        return metric_type(name, documentation, **kwargs)
    except ValueError:
        # Counters are registered under their base name; "_total" is appended on export.
        collectors = REGISTRY._names_to_collectors
        return collectors.get(name) or collectors[f"{name}_total"]


REQUESTS_TOTAL = get_or_create_metric(
    "todo_requests_total",
    "Total API requests",
    Counter,
    labelnames=["endpoint", "status"],
)

REQUEST_LATENCY_SECONDS = get_or_create_metric(
    "todo_request_latency_seconds",
    "API request latency",
    Histogram,
    labelnames=["endpoint"],
)

TASKS_CREATED_TOTAL = get_or_create_metric(
    "todo_tasks_created_total",
    "Tasks stored, by source",
    Counter,
    labelnames=["source"],
)

EXTRACTION_FAILURES_TOTAL = get_or_create_metric(
    "todo_extraction_failures_total",
    "Failed extraction calls, by kind (service or validation)",
    Counter,
    labelnames=["kind"],
)

DUE_DATE_UNRESOLVED_TOTAL = get_or_create_metric(
    "todo_due_date_unresolved_total",
    "Extracted due-date phrases that could not be resolved",
    Counter,
)
