"""Monitoring configuration for the bot."""
from prometheus_client import Counter, Gauge, Histogram, start_http_server

# Session metrics
active_sessions = Gauge(
    "sweepbot_active_sessions",
    "Number of exercise sessions currently in progress",
)

sessions_started = Counter(
    "sweepbot_sessions_started_total",
    "Total number of exercise sessions started",
    ["progression_mode"],
)

sessions_completed = Counter(
    "sweepbot_sessions_completed_total",
    "Total number of exercise sessions completed",
    ["reason"],  # finished or timer
)

session_duration = Histogram(
    "sweepbot_session_duration_seconds",
    "Duration of exercise sessions in seconds",
    buckets=[60, 300, 600, 1800, 3600],  # 1min, 5min, 10min, 30min, 1hour
)

session_accuracy = Histogram(
    "sweepbot_session_accuracy_percent",
    "Final accuracy of completed sessions",
    buckets=[10, 30, 50, 70, 90, 100],
)

# Answer metrics
submissions = Counter(
    "sweepbot_submissions_total",
    "Total number of answer submissions",
    ["stage", "outcome"],
)

hints_requested = Counter(
    "sweepbot_hints_requested_total",
    "Total number of hints shown",
    ["source"],  # wrong_answer or command
)

speech_attempts = Counter(
    "sweepbot_speech_attempts_total",
    "Total number of spoken answers received",
    ["outcome"],
)

# Error metrics
error_count = Counter(
    "sweepbot_errors_total",
    "Total number of errors encountered",
    ["error_type"],
)


def start_monitoring(port: int = 9090) -> None:
    """Start the Prometheus metrics server."""
    start_http_server(port)
