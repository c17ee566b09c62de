from typing import Dict, List

from rich.panel import Panel
from rich.table import Table

from ..models import MembershipEdge, unique_edges
from ..utils.console import console
from . import COLORS, domain_color


def membership_rows(edges: List[MembershipEdge]) -> Dict[str, List[MembershipEdge]]:
    """
    Prepare edges for display: drop anchors, deduplicate, group by source domain.

    Domains keep the order they first appear in; rows inside a domain are
    sorted by nesting level, then identity and group name.
    """
    grouped: Dict[str, List[MembershipEdge]] = {}
    for edge in unique_edges(e for e in edges if not e.is_anchor):
        grouped.setdefault(edge.source_domain.lower(), []).append(edge)

    for domain_edges in grouped.values():
        domain_edges.sort(key=lambda e: (e.nesting_level, e.source_identity.lower(), e.target_group.lower()))
    return grouped


def _kind_cell(kind: str) -> str:
    style = COLORS["group"] if kind == "Group" else COLORS["user"]
    return f"[{style}]{kind}[/]"


def print_membership_table(edges: List[MembershipEdge]) -> int:
    """
    Print resolved memberships as a Rich table, one section per source domain.

    FSP (cross-domain) rows are tagged and the member/group kinds are shown so
    users and nested groups stand apart.

    Args:
        edges: Raw edges from a resolution run

    Returns:
        Number of rows printed
    """
    grouped = membership_rows(edges)
    if not grouped:
        console.print("[dim]No group memberships found[/]")
        return 0

    table = Table(
        show_header=True,
        header_style=COLORS["header"],
        border_style="dim",
        box=None,
    )
    table.add_column("Member", no_wrap=True)
    table.add_column("Kind", justify="center")
    table.add_column("Group", no_wrap=True)
    table.add_column("Kind", justify="center")
    table.add_column("Level", justify="right")
    table.add_column("Group SID", style=COLORS["label"])
    table.add_column("", justify="center")

    total = 0
    for index, (_, domain_edges) in enumerate(grouped.items()):
        color = domain_color(index)
        if index:
            table.add_section()
        for edge in domain_edges:
            fsp_tag = f"[{COLORS['fsp']}]FSP[/]" if edge.is_foreign_security_principal else ""
            table.add_row(
                f"[{color}]{edge.source_domain}\\{edge.source_identity}[/]",
                _kind_cell(edge.source_kind),
                f"[{color}]{edge.target_domain}\\{edge.target_group}[/]",
                _kind_cell(edge.target_kind),
                str(edge.nesting_level),
                edge.target_sid,
                fsp_tag,
            )
            total += 1

    console.print()
    console.print(
        Panel(
            table,
            title=f"[{COLORS['header']}]GROUP MEMBERSHIPS ({total})[/]",
            border_style=COLORS["border"],
        )
    )
    return total


def print_run_summary(stats, edges: List[MembershipEdge]) -> None:
    """
    Print the counters of a resolution run next to the edge totals.

    Args:
        stats: ResolveStats of the run
        edges: Raw edges from the run
    """
    memberships = [e for e in edges if not e.is_anchor]
    unique = unique_edges(memberships)
    fsp_count = sum(1 for e in unique if e.is_foreign_security_principal)

    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column("Field", style=COLORS["label"], width=22)
    table.add_column("Value", style=COLORS["value"])

    table.add_row("Identities resolved", str(stats.roots_resolved))
    table.add_row("Identities not found", str(stats.not_found))
    table.add_row("Raw edges", str(len(memberships)))
    table.add_row("Unique memberships", str(len(unique)))
    table.add_row("Foreign (FSP)", f"[{COLORS['fsp']}]{fsp_count}[/]" if fsp_count else "0")
    table.add_row("Deepest level", str(max(stats.deepest_level, 0)) if memberships else "-")
    table.add_row("Directory lookups", str(stats.lookups))
    if stats.lookup_failures:
        table.add_row("Skipped memberships", f"[{COLORS['warning']}]{stats.lookup_failures}[/]")
    if stats.budget_stops:
        table.add_row("Depth budget stops", f"[{COLORS['warning']}]{stats.budget_stops}[/]")

    console.print()
    console.print(Panel(table, title="[bold]RUN SUMMARY[/]", border_style="dim", expand=False))
