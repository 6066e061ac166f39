"""Token budget allocation across identity / project / other."""

from __future__ import annotations

from ctxpack.context.models import BudgetCategory, CategoryBudget, TokenBudget

# Fixed policy split. Project absorbs the rounding remainder.
IDENTITY_PERCENT = 20
PROJECT_PERCENT = 50
OTHER_PERCENT = 30


def allocate(total_tokens: int, reserved: int = 0) -> TokenBudget:
    """Split `total_tokens` 20/50/30 after setting `reserved` tokens aside.

    The three allocations plus `reserved` always sum to the total.
    """
    if total_tokens < 0:
        raise ValueError(f"Total token budget must be non-negative, got {total_tokens}")
    if not 0 <= reserved <= total_tokens:
        raise ValueError(f"Reserved tokens must be within [0, {total_tokens}], got {reserved}")
    spendable = total_tokens - reserved
    identity = spendable * IDENTITY_PERCENT // 100
    other = spendable * OTHER_PERCENT // 100
    project = spendable - identity - other
    return TokenBudget(
        total_allocated=total_tokens,
        reserved=reserved,
        identity=CategoryBudget(allocated=identity),
        project=CategoryBudget(allocated=project),
        other=CategoryBudget(allocated=other),
    )


def try_reserve(budget: TokenBudget, category: BudgetCategory, cost: int) -> bool:
    """Commit `cost` tokens to `category` if they fit; otherwise change nothing."""
    return budget.try_reserve(category, cost)
