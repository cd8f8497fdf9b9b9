"""
Prometheus metrics for the household ledger.

Provides observability into operations, authorization refusals and the
side effects that are easy to miss (auto-created budgets, pruned bank
accounts).
"""

import time
from collections.abc import Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from prometheus_client import Counter, Histogram

# ============================================================================
# Operation Metrics
# ============================================================================

operations_total = Counter(
    "ledger_operations_total",
    "Total number of ledger operations processed",
    ["operation", "status"],  # status: success, not_found, forbidden, bad_request, error
)

operation_duration_seconds = Histogram(
    "ledger_operation_duration_seconds",
    "Duration of ledger operations in seconds",
    ["operation"],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

# ============================================================================
# Authorization & Invitation Metrics
# ============================================================================

authorization_denials_total = Counter(
    "ledger_authorization_denials_total",
    "Total number of requests refused by the authorization resolver",
    ["reason"],  # reason: not_participant, viewer_read_only, owner_only
)

invitation_transitions_total = Counter(
    "ledger_invitation_transitions_total",
    "Total number of member lifecycle transitions",
    ["transition"],  # invited, linked, placeholder, accepted, merged, declined, revoked, removed
)

# ============================================================================
# Budget & Account Metrics
# ============================================================================

budgets_autocreated_total = Counter(
    "ledger_budgets_autocreated_total",
    "Total number of monthly budgets created on demand",
)

budget_lock_rejections_total = Counter(
    "ledger_budget_lock_rejections_total",
    "Total number of writes refused because a budget is locked",
)

bank_accounts_pruned_total = Counter(
    "ledger_bank_accounts_pruned_total",
    "Total number of bank accounts deleted after losing their last member",
)

# ============================================================================
# Helper Functions
# ============================================================================

P = ParamSpec("P")
R = TypeVar("R")


def track_operation(operation: str) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Decorator to track operation count and duration.

    The status label is the error kind of a LedgerError ("not_found",
    "forbidden", "bad_request"), "error" for anything else, or "success".

    Args:
        operation: Name of the ledger operation
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            start = time.perf_counter()
            status = "success"
            try:
                return func(*args, **kwargs)
            except Exception as e:
                status = getattr(e, "kind", "error")
                raise
            finally:
                operation_duration_seconds.labels(operation=operation).observe(
                    time.perf_counter() - start
                )
                operations_total.labels(operation=operation, status=status).inc()

        return wrapper

    return decorator
