"""Monitoring configuration for the bot."""
from prometheus_client import Counter, Histogram, start_http_server

# User metrics
total_users = Counter(
    "versebot_total_users",
    "Total number of users who registered with the bot",
)

suspended_users = Counter(
    "versebot_suspended_users_total",
    "Total number of account suspensions issued by admins",
)

# Exercise metrics
exercises_started = Counter(
    "versebot_exercises_started_total",
    "Total number of exercises started",
    ["exercise_type"],
)

exercises_completed = Counter(
    "versebot_exercises_completed_total",
    "Total number of exercise completion events",
    ["exercise_type"],
)

exercise_accuracy = Histogram(
    "versebot_exercise_accuracy_percent",
    "Accuracy reported by completed exercises",
    ["exercise_type"],
    buckets=[25, 50, 75, 90, 100],
)

exercise_duration = Histogram(
    "versebot_exercise_duration_seconds",
    "Time spent on completed exercises in seconds",
    ["exercise_type"],
    buckets=[15, 30, 60, 120, 300, 600],
)

pending_events = Counter(
    "versebot_pending_completion_events_total",
    "Completion events queued locally until they can be stored",
)

# Audio metrics
transcriptions = Counter(
    "versebot_transcriptions_total",
    "Total number of voice transcriptions requested",
)

transcription_errors = Counter(
    "versebot_transcription_errors_total",
    "Total number of failed voice transcriptions",
)

# Error metrics
error_count = Counter(
    "versebot_errors_total",
    "Total number of errors encountered",
    ["error_type"],
)

# Database metrics
db_errors = Counter(
    "versebot_db_errors_total",
    "Total number of database errors",
    ["error_type"],
)


def start_monitoring(port: int = 9090) -> None:
    """Start the Prometheus metrics server."""
    start_http_server(port)
