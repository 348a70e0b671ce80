"""
Generate human-readable run reports in Markdown format.

This module provides RunReporter, which transforms RunMetrics into a
formatted Markdown report for one pipeline invocation.

Report sections:
- Header with invocation metadata (ID, driver, load, duration, outcome)
- Stage timings
- Stage errors
- Source outcomes (collected, failed, fallback)
- Data quality scores
- Source health status

Design decisions:
- Markdown output for readability and version control friendliness
- Uses tabulate library for clean table formatting (GitHub-flavored)
- Reports saved with timestamp for historical tracking
"""
from datetime import datetime, timezone
from pathlib import Path
from tabulate import tabulate

from .metrics import RunMetrics


class RunReporter:
    """
    Generates human-readable Markdown reports from invocation metrics.
    """

    def generate_report(self, metrics: RunMetrics) -> str:
        """
        Generate full run report in Markdown format.

        Args:
            metrics: RunMetrics object from a completed invocation

        Returns:
            Markdown-formatted report as string
        """
        lines = []

        # Header
        lines.append("# ETA Pipeline Run Report")
        lines.append(f"**Run ID:** {metrics.run_id}")
        lines.append(f"**Driver:** {metrics.driver_id}")
        lines.append(f"**Load:** {metrics.load_id}")
        lines.append(f"**Started:** {metrics.started_at.isoformat()}")
        if metrics.completed_at:
            duration = (metrics.completed_at - metrics.started_at).total_seconds()
            lines.append(f"**Duration:** {duration:.3f} seconds")
        outcome = "unknown" if metrics.success is None else ("success" if metrics.success else "failed")
        lines.append(f"**Outcome:** {outcome}")
        lines.append("")

        # Stage timings
        if metrics.stage_durations_ms:
            lines.append("## Stages")
            stage_data = [[stage, f"{ms:.1f}"] for stage, ms in metrics.stage_durations_ms.items()]
            lines.append(tabulate(stage_data, headers=["Stage", "Duration (ms)"], tablefmt="github"))
            lines.append("")

        # Stage errors
        if metrics.stage_errors:
            lines.append("## Stage Errors")
            error_data = [
                [e["stage"], e["error_type"], e["message"], "yes" if e["fatal"] else "no"]
                for e in metrics.stage_errors
            ]
            lines.append(tabulate(error_data, headers=["Stage", "Type", "Message", "Fatal"], tablefmt="github"))
            lines.append("")

        # Source outcomes
        sources = list(dict.fromkeys(metrics.sources_collected + metrics.sources_failed))
        if sources:
            lines.append("## Sources")
            source_data = []
            for source in sources:
                if source in metrics.sources_collected:
                    status = "collected"
                elif source in metrics.fallbacks_triggered:
                    status = "fallback"
                else:
                    status = "failed"
                source_data.append([source, status])
            lines.append(tabulate(source_data, headers=["Source", "Status"], tablefmt="github"))
            lines.append("")

        # Data quality
        if metrics.data_quality:
            lines.append("## Data Quality")
            quality_data = [[k, f"{v:.2f}"] for k, v in metrics.data_quality.items()]
            lines.append(tabulate(quality_data, headers=["Metric", "Score"], tablefmt="github"))
            lines.append("")

        # Source health
        if metrics.source_health:
            lines.append("## Source Health")
            health_data = []
            for source, health in metrics.source_health.items():
                status = "✓" if health.get("healthy", False) else "✗"
                health_data.append([status, source, health.get("fetch_count", 0), health.get("error") or ""])
            lines.append(tabulate(health_data, headers=["Status", "Source", "Fetches", "Last Error"], tablefmt="github"))
            lines.append("")

        return "\n".join(lines)

    def save_report(self, report: str, output_dir: Path) -> Path:
        """
        Save report to file with timestamp.

        Args:
            report: Markdown report content
            output_dir: Directory to save report in

        Returns:
            Path to saved report file
        """
        output_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S-%f")
        filepath = output_dir / f"eta-run-report-{timestamp}.md"
        filepath.write_text(report)
        return filepath
