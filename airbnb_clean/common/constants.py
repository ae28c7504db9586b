"""Application constants."""

USER_AGENT = "airbnb-clean/1.0 (+batch listings cleaning)"
STAGES = (
    "fetch",
    "load",
    "check",
    "clean",
    "export",
)
EXIT_SUCCESS = 0
EXIT_PARTIAL = 10
EXIT_HARD_FAIL = 20
JSON_LOG_FIELDS = (
    "timestamp",
    "run_id",
    "stage",
    "source",
    "event",
    "status",
    "attempt",
    "duration_ms",
    "rows_in",
    "rows_out",
    "rows_rejected",
    "error_code",
    "message",
)
SAMPLE_LIMIT = 50
TOP_PROPERTY_TYPES = 25
