"""Plain-text monthly report, shared by copy/paste or mail."""

from kakeibo.aggregation.monthly import MonthlySummary


def format_yen(amount: int) -> str:
    """¥1,234 / -¥1,234"""
    sign = "-" if amount < 0 else ""
    return f"{sign}¥{abs(amount):,}"


def format_share_summary(summary: MonthlySummary, app_name: str = "Kakeibo") -> str:
    """
    Build the text a user shares for one month.

    The first line is a title, usable as a mail subject.
    """
    lines = [
        f"{app_name} report for {summary.month.display_label}",
        "",
        f"Income:   {format_yen(summary.total_income)}",
        f"Spending: {format_yen(summary.total_spent)}",
        f"Balance:  {format_yen(summary.balance)}",
    ]

    if summary.total_spent:
        lines.append(
            f"  Fixed {format_yen(summary.fixed_cost)} / "
            f"Variable {format_yen(summary.variable_cost)}"
        )

    if summary.overall_budget.is_set:
        lines.append(
            f"Budget:   {format_yen(summary.overall_budget.limit)} "
            f"({summary.budget_progress:.0f}% used, "
            f"{format_yen(summary.remaining_budget)} left)"
        )

    breakdown = summary.category_breakdown()
    if breakdown:
        lines.append("")
        lines.append("By category:")
        for category, amount in breakdown:
            share = amount / summary.total_spent * 100
            lines.append(f"- {category}: {format_yen(amount)} ({share:.0f}%)")

    return "\n".join(lines)
