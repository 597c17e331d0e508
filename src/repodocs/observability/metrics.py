from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

# Sync Metrics
SYNC_RUNS = Counter(
    "repodocs_sync_runs_total",
    "Total number of repository syncs",
    ["status"]
)

SYNC_FILES = Counter(
    "repodocs_sync_files_total",
    "Files processed during sync",
    ["result"]
)

SYNC_DURATION = Histogram(
    "repodocs_sync_duration_seconds",
    "Repository sync duration in seconds",
    buckets=[1.0, 5.0, 15.0, 30.0, 60.0, 120.0, 300.0, 600.0, 1800.0]
)

EMBEDDING_BATCHES = Counter(
    "repodocs_embedding_batches_total",
    "Embedding batches by outcome",
    ["status"]
)

# Documentation Metrics
RUNNER_CALLS = Counter(
    "repodocs_runner_calls_total",
    "Documentation runner invocations",
    ["runner", "outcome"]
)

RUNNER_CONTINUATIONS = Counter(
    "repodocs_runner_continuations_total",
    "Continuation calls made after truncated model output"
)

VERIFICATION_SCORE = Histogram(
    "repodocs_verification_score",
    "Overall evidence verification score of generated bundles",
    buckets=[10, 20, 30, 40, 50, 60, 70, 80, 90, 100]
)

WEBHOOK_EVENTS = Counter(
    "repodocs_webhook_events_total",
    "GitHub webhook deliveries",
    ["event", "result"]
)

def get_metrics():
    """Return latest metrics in Prometheus format."""
    return generate_latest(), CONTENT_TYPE_LATEST
