"""Monitoring configuration for VocabAI."""
from prometheus_client import Counter, Histogram, start_http_server

# Challenge metrics
challenges_generated = Counter(
    "vocabai_challenges_total",
    "Total number of challenges produced",
    ["source"],
)

provider_errors = Counter(
    "vocabai_provider_errors_total",
    "Total number of challenge provider failures absorbed by the fallback",
    ["error_type"],
)

challenge_duration = Histogram(
    "vocabai_challenge_duration_seconds",
    "Time spent producing a challenge",
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 15.0],
)

# External call metrics
api_retries = Counter(
    "vocabai_api_retries_total",
    "Total number of retried external calls",
    ["error_type"],
)

# Answer metrics
answers = Counter(
    "vocabai_answers_total",
    "Total number of graded answers",
    ["result"],
)

# Speech metrics
speech_cache_hits = Counter(
    "vocabai_speech_cache_hits_total",
    "Total number of fixed phrases played from the response cache",
)

speech_cache_misses = Counter(
    "vocabai_speech_cache_misses_total",
    "Total number of fixed phrases that had to be synthesized",
)

synthesis_failures = Counter(
    "vocabai_synthesis_failures_total",
    "Total number of speech synthesis failures",
    ["error_type"],
)

recognition_failures = Counter(
    "vocabai_recognition_failures_total",
    "Total number of listening sessions that ended without a transcript",
    ["reason"],
)

# Conversation metrics
state_transitions = Counter(
    "vocabai_state_transitions_total",
    "Total number of conversation state transitions",
    ["state"],
)

session_resets = Counter(
    "vocabai_session_resets_total",
    "Total number of full session resets",
)


def start_monitoring(port: int = 9090) -> None:
    """Start the Prometheus metrics server."""
    start_http_server(port)
