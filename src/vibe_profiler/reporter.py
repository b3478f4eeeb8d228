"""Render community rollups for the terminal, as JSON, and as HTML."""

import html
import json
from pathlib import Path
from typing import List

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from vibe_profiler.rollup import BucketShare, CommunityStatsPayload, CommunityStatsResult, CommunityStatsSuppressed
from vibe_profiler.scoring import RATE_BUCKET_LABELS
from vibe_profiler.snapshot import AXIS_KEYS

console = Console()

AXIS_NAMES = {
    "automation_heaviness": ("Automation", "Manual", "AI-Heavy"),
    "guardrail_strength": ("Guardrails", "Light", "Rigorous"),
    "iteration_loop_intensity": ("Iteration", "Stable", "Rapid"),
    "planning_signal": ("Planning", "Emergent", "Structured"),
    "surface_area_per_change": ("Surface Area", "Narrow", "Wide"),
    "shipping_rhythm": ("Rhythm", "Steady", "Bursty"),
}


def _pct_bar(pct: float, width: int = 20) -> str:
    """Return an ASCII bar for a percentage."""
    filled = int(pct / 100 * width)
    return "[" + "#" * filled + "-" * (width - filled) + "]"


def _range_bar(p25: float, p50: float, p75: float, width: int = 20) -> str:
    """Return an ASCII bar with the interquartile range shaded and the median marked."""
    cells = []
    for i in range(width):
        position = (i + 0.5) / width * 100
        if abs(position - p50) <= 50 / width:
            cells.append("|")
        elif p25 <= position <= p75:
            cells.append("=")
        else:
            cells.append("-")
    return "".join(cells)


def _diversity_label(bucket: str) -> str:
    if bucket == "3+":
        return "3+ tools"
    return f"{bucket} tool{'' if bucket == '1' else 's'}"


def _bucket_table(title: str, buckets: List[BucketShare], label_for) -> Table:
    table = Table(title=title, show_header=False, box=None, padding=(0, 1))
    table.add_column("Bucket", style="dim")
    table.add_column("Bar")
    table.add_column("Pct", justify="right")
    for bucket in buckets:
        table.add_row(label_for(bucket.bucket), Text(_pct_bar(bucket.pct, 16), style="magenta"), f"{bucket.pct}%")
    return table


def _print_suppressed(result: CommunityStatsSuppressed) -> None:
    progress = min(100, round(result.eligible_profiles / result.threshold * 100)) if result.threshold else 0
    body = (
        f"[yellow]Community stats are withheld[/yellow] ({result.reason}).\n"
        f"{result.eligible_profiles} / {result.threshold} profiles  "
        f"{escape(_pct_bar(progress))} {progress}%"
    )
    console.print(Panel(body, title="[bold]Coming Soon[/bold]", border_style="yellow"))


def print_terminal_report(result: CommunityStatsResult) -> None:
    """Print a rich terminal report of a community rollup."""
    console.print()
    console.print(Panel.fit("[bold cyan]vibe-profiler[/bold cyan] - Community Insights", border_style="cyan"))

    if result.suppressed:
        _print_suppressed(result)
        return

    console.print(
        f"[dim]Developers:[/dim] {result.eligible_profiles:,}   "
        f"[dim]Repos:[/dim] {result.eligible_repos:,}   "
        f"[dim]Commits:[/dim] {result.total_analyzed_commits:,}   "
        f"[dim]As of:[/dim] {result.as_of}"
    )
    console.print()

    if result.personas:
        persona_table = Table(title="Persona Breakdown", header_style="bold magenta", border_style="dim", expand=True)
        persona_table.add_column("Persona", style="cyan")
        persona_table.add_column("Share", justify="left", width=24)
        persona_table.add_column("Pct", justify="right", width=8)
        for persona in result.personas:
            persona_table.add_row(escape(persona.name), Text(_pct_bar(persona.pct), style="magenta"), f"{persona.pct}%")
        console.print(persona_table)
    else:
        console.print("[yellow]Not enough data per persona yet.[/yellow]")
    console.print()

    confidence = result.persona_confidence
    console.print(
        f"[dim]Persona confidence:[/dim] high {confidence['high']}%   "
        f"medium {confidence['medium']}%   low {confidence['low']}%"
    )
    console.print()

    axes_table = Table(title="Community Axes (p25-p75)", header_style="bold magenta", border_style="dim", expand=True)
    axes_table.add_column("Axis", style="cyan")
    axes_table.add_column("Range", width=24)
    axes_table.add_column("p25", justify="right")
    axes_table.add_column("p50", justify="right")
    axes_table.add_column("p75", justify="right")
    for key in AXIS_KEYS:
        quartile = result.axes[key]
        name, low_label, high_label = AXIS_NAMES[key]
        axes_table.add_row(
            f"{name} [dim]({low_label} -> {high_label})[/dim]",
            _range_bar(quartile.p25, quartile.p50, quartile.p75),
            str(quartile.p25),
            Text(str(quartile.p50), style="bold"),
            str(quartile.p75),
        )
    console.print(axes_table)
    console.print()

    if result.ai_tools:
        ai = result.ai_tools
        summary = Table.grid(padding=(0, 4))
        summary.add_row(
            _bucket_table("AI Collaboration Rate", ai.collaboration_rate_buckets, lambda b: RATE_BUCKET_LABELS.get(b, b)),
            _bucket_table("AI Tool Diversity", ai.tool_diversity_buckets, _diversity_label),
        )
        console.print(
            Panel(
                summary,
                title=f"[bold]AI Tool Adoption[/bold] ({ai.eligible_profiles_with_data} profiles with AI data)",
                border_style="magenta",
            )
        )
    else:
        console.print("[dim]AI tool adoption is withheld until more profiles report AI data.[/dim]")
    console.print()


def generate_json_report(result: CommunityStatsResult) -> str:
    """Generate the JSON payload of a community rollup."""
    return json.dumps(result.to_dict(), indent=2)


def _html_bucket_rows(buckets: List[BucketShare], label_for) -> str:
    rows = []
    for bucket in buckets:
        rows.append(
            f'<div class="row"><span class="label">{html.escape(label_for(bucket.bucket))}</span>'
            f'<div class="bar-bg"><div class="bar" style="width:{bucket.pct}%"></div></div>'
            f'<span class="pct">{bucket.pct}%</span></div>'
        )
    return "\n".join(rows)


def _html_body(result: CommunityStatsPayload) -> str:
    if result.personas:
        persona_rows = _html_bucket_rows(
            [BucketShare(bucket=p.name, pct=p.pct) for p in result.personas], lambda name: name
        )
    else:
        persona_rows = '<p class="muted">Not enough data per persona yet - check back soon.</p>'

    axis_cards = []
    for key in AXIS_KEYS:
        quartile = result.axes[key]
        name, low_label, high_label = AXIS_NAMES[key]
        width = max(quartile.p75 - quartile.p25, 2)
        axis_cards.append(
            f"""
  <div class="card">
    <strong>{name}</strong>
    <div class="range-bg">
      <div class="range" style="left:{quartile.p25}%;width:{width}%"></div>
      <div class="median" style="left:{quartile.p50}%"></div>
    </div>
    <div class="axis-labels"><span>{low_label}</span><span>p50: {quartile.p50}</span><span>{high_label}</span></div>
  </div>"""
        )

    ai_section = ""
    if result.ai_tools:
        ai = result.ai_tools
        ai_section = f"""
<section>
  <h3>AI Tool Adoption</h3>
  <p class="muted">Based on {ai.eligible_profiles_with_data} profiles with AI data</p>
  <div class="grid">
    <div><h4>AI Collaboration Rate</h4>
{_html_bucket_rows(ai.collaboration_rate_buckets, lambda b: RATE_BUCKET_LABELS.get(b, b))}
    </div>
    <div><h4>AI Tool Diversity</h4>
{_html_bucket_rows(ai.tool_diversity_buckets, _diversity_label)}
    </div>
  </div>
</section>"""

    confidence = result.persona_confidence
    return f"""
<p class="meta">Anonymized patterns from {result.eligible_profiles:,} developers across
{result.eligible_repos:,} repos ({result.total_analyzed_commits:,} commits). As of {result.as_of}.</p>
<section>
  <h3>Persona Breakdown</h3>
{persona_rows}
  <p class="muted">Confidence: high {confidence['high']}% / medium {confidence['medium']}% / low {confidence['low']}%</p>
</section>
<section>
  <h3>Community Axes</h3>
  <div class="grid">{''.join(axis_cards)}
  </div>
</section>{ai_section}"""


def generate_html_report(result: CommunityStatsResult) -> str:
    """Generate a self-contained single-file community insights page."""
    if result.suppressed:
        progress = min(100, round(result.eligible_profiles / result.threshold * 100)) if result.threshold else 0
        body = f"""
<section>
  <h3>Coming Soon</h3>
  <p class="muted">Once {result.threshold} profiles are analyzed, community-wide patterns will appear here.</p>
  <div class="row"><span class="label">{result.eligible_profiles} / {result.threshold}</span>
  <div class="bar-bg"><div class="bar" style="width:{progress}%"></div></div>
  <span class="pct">{progress}%</span></div>
</section>"""
    else:
        body = _html_body(result)

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8"/>
<meta name="viewport" content="width=device-width, initial-scale=1.0"/>
<title>Community Insights | vibe-profiler</title>
<style>
  * {{ box-sizing: border-box; margin: 0; padding: 0; }}
  body {{ font-family: 'Segoe UI', system-ui, sans-serif; background: #0f172a; color: #e2e8f0; padding: 2rem; }}
  h1 {{ font-size: 2rem; color: #a78bfa; margin-bottom: 0.5rem; }}
  h3 {{ color: #c4b5fd; margin-bottom: 0.8rem; }}
  h4 {{ color: #94a3b8; font-size: 0.85rem; margin-bottom: 0.5rem; }}
  section {{ background: #1e293b; border: 1px solid #334155; border-radius: 12px; padding: 1.5rem; margin-bottom: 1.5rem; }}
  .meta, .muted {{ color: #64748b; font-size: 0.85rem; margin-bottom: 1rem; }}
  .grid {{ display: grid; grid-template-columns: repeat(auto-fit, minmax(220px, 1fr)); gap: 1rem; }}
  .row {{ display: flex; align-items: center; gap: 0.6rem; margin-bottom: 0.4rem; font-size: 0.85rem; }}
  .label {{ min-width: 140px; color: #cbd5e1; }}
  .bar-bg {{ flex: 1; height: 8px; background: #334155; border-radius: 4px; overflow: hidden; }}
  .bar {{ height: 100%; background: linear-gradient(90deg, #8b5cf6, #6366f1); }}
  .pct {{ min-width: 3rem; text-align: right; color: #94a3b8; }}
  .card {{ background: #0f172a; border-radius: 10px; padding: 1rem; border: 1px solid #334155; }}
  .range-bg {{ position: relative; height: 8px; background: #334155; border-radius: 4px; margin: 0.8rem 0 0.4rem; }}
  .range {{ position: absolute; top: 0; height: 8px; border-radius: 4px; background: #818cf8; }}
  .median {{ position: absolute; top: -2px; width: 4px; height: 12px; border-radius: 2px; background: #6d28d9; }}
  .axis-labels {{ display: flex; justify-content: space-between; font-size: 0.7rem; color: #64748b; }}
  footer {{ margin-top: 2rem; text-align: center; color: #475569; font-size: 0.8rem; }}
</style>
</head>
<body>
<h1>Community Insights</h1>
{body}
<footer>Generated by <strong>vibe-profiler</strong></footer>
</body>
</html>"""


def write_html_report(result: CommunityStatsResult, output_path: str) -> None:
    """Write an HTML report to a file."""
    Path(output_path).write_text(generate_html_report(result), encoding="utf-8")
