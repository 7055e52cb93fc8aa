"""
Console report generator for Infragate.

Renders decisions in the terminal using Rich: a header with the verdict,
then one row per violation and warning naming the policy, its
enforcement level and the offending field.
"""

from typing import Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from infragate.engine import ResourceVerdict
from infragate.registry import PolicyRegistry
from infragate.schema import Decision, EnforcementLevel, EvaluationContext, Violation, ViolationKind


# Status icons
ICON_ALLOW = "[green]✓[/green]"
ICON_DENY = "[red]✗[/red]"
ICON_OVERRIDE = "[yellow]⊘[/yellow]"
ICON_WARN = "[cyan]![/cyan]"

LEVEL_STYLES = {
    EnforcementLevel.HARD_MANDATORY: "red",
    EnforcementLevel.SOFT_MANDATORY: "yellow",
    EnforcementLevel.ADVISORY: "cyan",
}


def print_decision(
    decision: Decision,
    context: EvaluationContext | None = None,
    console: Console | None = None,
    title: str | None = None,
) -> None:
    """
    Print a decision for a single resource.

    Args:
        decision: The decision to print
        context: The evaluated context, if one could be built
        console: Rich Console instance (creates one if not provided)
        title: Resource label; defaults to the context's description
    """
    if console is None:
        console = Console()

    label = title or (context.describe() if context else "<unparsed resource>")
    _print_header(console, decision, label)

    findings = list(decision.violations) + list(decision.warnings)
    if findings:
        console.print(_violation_table(findings))


def print_plan_report(verdicts: Sequence[ResourceVerdict], console: Console | None = None) -> None:
    """Print every resource of a plan followed by a summary line."""
    if console is None:
        console = Console()

    if not verdicts:
        console.print("[dim]No resource changes to evaluate.[/dim]")
        return

    for verdict in verdicts:
        print_decision(verdict.decision, verdict.context, console, title=verdict.address)
        console.print()

    denied = sum(1 for v in verdicts if not v.decision.allowed)
    overridable = sum(1 for v in verdicts if v.decision.overridable)
    warned = sum(1 for v in verdicts if v.decision.warnings)
    console.print(
        f"[dim]Resources: {len(verdicts)} | Denied: {denied} | "
        f"Needs override: {overridable} | With warnings: {warned}[/dim]"
    )


def print_policy_table(registry: PolicyRegistry, console: Console | None = None) -> None:
    """Print the loaded policies in declaration order."""
    if console is None:
        console = Console()

    table = Table(show_header=True, header_style="bold")
    table.add_column("Policy", style="cyan")
    table.add_column("Level", width=14)
    table.add_column("Kinds")
    table.add_column("Namespaces")
    table.add_column("Checks", justify="right")

    for policy in registry:
        style = LEVEL_STYLES[policy.enforcement_level]
        checks = len(policy.spec.checks) if policy.spec else 0
        table.add_row(
            policy.name,
            f"[{style}]{policy.enforcement_level.value}[/{style}]",
            ", ".join(policy.scope.kinds) or "*",
            ", ".join(policy.scope.namespaces) or "*",
            str(checks),
        )

    console.print(table)
    console.print(f"[dim]{len(registry)} policies loaded[/dim]")


def _print_header(console: Console, decision: Decision, label: str) -> None:
    if not decision.allowed:
        icon, verdict, style = ICON_DENY, "DENIED", "red"
    elif decision.overridable:
        icon, verdict, style = ICON_OVERRIDE, "NEEDS OVERRIDE", "yellow"
    else:
        icon, verdict, style = ICON_ALLOW, "ALLOWED", "green"

    header = Text()
    header.append(" Resource ", style="bold")
    header.append(label, style="bold cyan")
    header.append(" │ ", style="dim")
    header.append(verdict, style=f"bold {style}")
    header.append_text(Text.from_markup(f" {icon}"))
    console.print(Panel(header, expand=False))


def _violation_table(findings: list[Violation]) -> Table:
    table = Table(show_header=True, header_style="bold")
    table.add_column("", width=2)
    table.add_column("Policy", style="cyan")
    table.add_column("Level", width=14)
    table.add_column("Field", style="dim")
    table.add_column("Message")

    for violation in findings:
        style = LEVEL_STYLES[violation.severity]
        if violation.kind == ViolationKind.PREDICATE_ERROR:
            icon = "[magenta]‼[/magenta]"
        elif violation.severity == EnforcementLevel.ADVISORY:
            icon = ICON_WARN
        elif violation.severity == EnforcementLevel.SOFT_MANDATORY:
            icon = ICON_OVERRIDE
        else:
            icon = ICON_DENY
        table.add_row(
            icon,
            violation.policy_name,
            f"[{style}]{violation.severity.value}[/{style}]",
            violation.field or "",
            Text(violation.message),
        )
    return table
