from __future__ import annotations

from prometheus_client import Counter

webhook_events_total = Counter(
    "simosmaths_webhook_events_total",
    "Payment gateway webhook events received, by event type and outcome.",
    ["event_type", "outcome"],
)
checkout_sessions_created_total = Counter(
    "simosmaths_checkout_sessions_created_total",
    "Checkout sessions created, by plan and period.",
    ["plan", "period"],
)
trials_started_total = Counter(
    "simosmaths_trials_started_total",
    "Free trials started, by plan.",
    ["plan"],
)
exercise_submissions_total = Counter(
    "simosmaths_exercise_submissions_total",
    "Exercise answers submitted, by correctness.",
    ["correct"],
)
