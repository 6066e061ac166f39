"""Rich-powered console output for ctxpack."""

from __future__ import annotations

from rich.console import Console as RichConsole
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from ctxpack import __version__
from ctxpack.context.models import AssembledContext, BudgetCategory, CandidateItem, TokenBudget


class Console:
    """Terminal output for ctxpack using Rich."""

    def __init__(self) -> None:
        self.console = RichConsole()

    def banner(self) -> None:
        """Show the ctxpack banner."""
        self.console.print(
            Panel(
                f"[bold cyan]ctxpack[/bold cyan] [dim]v{__version__}[/dim]\n"
                "[dim]Token-budgeted context assembly[/dim]",
                border_style="cyan",
                padding=(1, 2),
            )
        )

    def success(self, message: str) -> None:
        self.console.print(f"[green]✓[/green] {message}")

    def error(self, message: str) -> None:
        self.console.print(f"[red]✗[/red] {message}")

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow]![/yellow] {message}")

    def info(self, message: str) -> None:
        self.console.print(f"[blue]i[/blue] {message}")

    def raw(self, text: str) -> None:
        """Print text without markup processing."""
        self.console.print(text, markup=False, highlight=False)

    def context_xml(self, text: str) -> None:
        """Render the context document with XML highlighting."""
        self.console.print(Syntax(text, "xml", theme="monokai", word_wrap=True))

    def show_stats(self, stats: dict) -> None:
        """Display knowledge store statistics."""
        table = Table(title="Knowledge Store", border_style="cyan")
        table.add_column("Metric", style="bold")
        table.add_column("Count", justify="right", style="cyan")

        table.add_row("Projects", str(stats.get("projects", 0)))
        table.add_row("Items", str(stats.get("items", 0)))
        table.add_row("Edges", str(stats.get("total_edges", 0)))

        item_types = stats.get("item_types", {})
        if item_types:
            table.add_section()
            for kind, count in sorted(item_types.items(), key=lambda x: -x[1]):
                table.add_row(f"  {kind}", str(count))

        self.console.print(table)

    def show_budget(self, budget: TokenBudget) -> None:
        """Display allocated vs. used tokens per category."""
        table = Table(title="Token Budget", border_style="cyan")
        table.add_column("Category", style="bold")
        table.add_column("Used", justify="right")
        table.add_column("Allocated", justify="right", style="cyan")
        table.add_column("Usage", justify="right")

        total_allocated = max(budget.total_allocated, 1)
        for category in BudgetCategory:
            bucket = budget.category(category)
            pct = round(bucket.used / bucket.allocated * 100) if bucket.allocated else 0
            share = round(bucket.allocated / total_allocated * 100)
            table.add_row(
                f"{category.value} ({share}%)",
                f"{bucket.used:,}",
                f"{bucket.allocated:,}",
                self._usage_cell(pct),
            )

        if budget.reserved:
            table.add_row("envelope", f"{budget.reserved:,}", f"{budget.reserved:,}", "[dim]fixed[/dim]")

        total = budget.total
        table.add_section()
        pct = round(total.used / total_allocated * 100)
        table.add_row("total", f"{total.used:,}", f"{total.allocated:,}", self._usage_cell(pct))
        self.console.print(table)

    @staticmethod
    def _usage_cell(pct: int) -> str:
        if pct >= 90:
            return f"[red]{pct}%[/red]"
        if pct >= 70:
            return f"[yellow]{pct}%[/yellow]"
        return f"[green]{pct}%[/green]"

    def show_sources(self, result: AssembledContext) -> None:
        """Display included items in inclusion order."""
        if not result.sources:
            self.warning("No items fit the budget.")
            return

        truncated = set(result.truncated_items)
        table = Table(title="Included Sources", border_style="cyan")
        table.add_column("#", justify="right", style="dim")
        table.add_column("Type")
        table.add_column("Name", style="bold")
        table.add_column("Relevance", justify="right", style="cyan")
        table.add_column("Confidence", justify="right")

        for i, source in enumerate(result.sources, 1):
            name = source.name + (" [dim](truncated)[/dim]" if source.id in truncated else "")
            table.add_row(
                str(i), source.type, name,
                f"{source.relevance:.2f}", f"{source.confidence:.2f}",
            )
        self.console.print(table)

    def show_item(self, item: CandidateItem, budget_category: BudgetCategory) -> None:
        """Display one knowledge item with its scoring signals."""
        signals = item.signals
        table = Table(show_header=False, border_style="cyan", title=f"Item {item.id}")
        table.add_column("Field", style="bold")
        table.add_column("Value")
        table.add_row("Type", f"{item.item_type.value} ({budget_category.value})")
        table.add_row("Name", item.display_name)
        table.add_row("Project", item.project_id or "[dim]unscoped[/dim]")
        table.add_row("Timestamp", signals.timestamp.isoformat() if signals.timestamp else "[dim]unknown[/dim]")
        table.add_row("Confidence", f"{signals.confidence:.2f}")
        if signals.reversed_at:
            table.add_row("Reversed", f"[yellow]{signals.reversed_at.isoformat()}[/yellow]")
        self.console.print(table)
        self.raw(item.content)

    def show_scores(self, result: AssembledContext, limit: int = 20) -> None:
        """Display the score breakdown for the top candidates."""
        table = Table(title="Relevance Scores", border_style="cyan")
        table.add_column("Item", style="bold")
        table.add_column("Total", justify="right", style="cyan")
        table.add_column("Semantic (50%)", justify="right")
        table.add_column("Recency (30%)", justify="right")
        table.add_column("Confidence (20%)", justify="right")
        table.add_column("Boost", justify="right")

        ranked = sorted(result.scores, key=lambda s: s.total_score, reverse=True)
        for score in ranked[:limit]:
            table.add_row(
                score.node_id,
                f"{score.total_score:.2f}",
                f"{score.semantic_score:.2f}",
                f"{score.recency_score:.2f}",
                f"{score.confidence_score:.2f}",
                f"+{score.project_boost:.2f}" if score.project_boost > 0 else "-",
            )
        self.console.print(table)
