"""Application metrics using the Prometheus client library.

All metrics are defined here so there is a single inventory of what the
service measures.  The modules that own the behaviour import a metric and
increment/observe it at the point of action; GET /metrics exposes them.

  badge_assignments_total        one per dispatcher call, by outcome
  badges_awarded_total           records that flipped to approved
  award_merge_conflicts_total    conditional upserts that lost a race
  award_transactions_total       project units committed / rolled back
  badge_assignment_duration_seconds
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

BADGE_ASSIGNMENTS = Counter(
    "badge_assignments_total",
    "Badge assignment calls by resolved category and outcome",
    ["category", "outcome"],  # outcome: "success" or "failure"
)

BADGES_AWARDED = Counter(
    "badges_awarded_total",
    "Award records that transitioned into approved",
    ["category", "subject"],  # subject: "user" or "project"
)

AWARD_MERGE_CONFLICTS = Counter(
    "award_merge_conflicts_total",
    "Evidence merges rejected because requirements_version moved on",
    ["subject"],
)

AWARD_TRANSACTIONS = Counter(
    "award_transactions_total",
    "Multi-record project award units by outcome",
    ["outcome"],  # "committed" or "rolled_back"
)

ASSIGNMENT_DURATION = Histogram(
    "badge_assignment_duration_seconds",
    "Time spent inside one badge assignment call",
    ["category"],
    # Single-record writes land in the low buckets; project units with many
    # members and badges in the upper ones.
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)
