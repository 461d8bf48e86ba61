"""Human-readable and JSON rendering of scan, typosquat and fix results."""

import json
from typing import Any, Dict, List

from rich.console import Console
from rich.table import Table

from .fixer.confirm import severity_marker
from .models import Analysis, FixResult, FixStatus, TyposquatMatch

SUPPORTED_FORMATS = ("table", "json")


def analysis_to_dict(analysis: Analysis) -> Dict[str, Any]:
    return {
        "summary": {
            "total_vulnerabilities": analysis.vulnerability_count,
            "high_severity_count": analysis.high_severity_count,
            "has_vulnerabilities": analysis.has_vulnerabilities,
        },
        "vulnerabilities": [
            {
                "gem": {
                    "name": vd.dependency.name,
                    "version": vd.dependency.version,
                    "source": vd.dependency.source,
                },
                "vulnerability": {
                    "id": vd.vulnerability.id,
                    "severity": vd.vulnerability.severity,
                    "summary": vd.vulnerability.summary,
                    "details": vd.vulnerability.details,
                    "affected_versions": list(vd.vulnerability.affected_versions),
                    "fixed_versions": list(vd.vulnerability.fixed_versions),
                },
                "recommended_fix": vd.recommended_fix,
            }
            for vd in analysis.vulnerable_dependencies
        ],
    }


def _check_format(output_format: str) -> str:
    fmt = (output_format or "").lower()
    if fmt not in SUPPORTED_FORMATS:
        raise ValueError(f"Unknown format: {output_format}. Supported formats: {', '.join(SUPPORTED_FORMATS)}")
    return fmt


class Reporter:
    def __init__(self, console: Console):
        self.console = console

    def _print_json(self, data: Any) -> None:
        self.console.print(json.dumps(data, indent=2), markup=False, highlight=False, emoji=False, soft_wrap=True)

    def report(self, analysis: Analysis, output_format: str = "table") -> None:
        """Print a vulnerability report.

        Raises:
            ValueError: For formats other than table and json
        """
        if _check_format(output_format) == "json":
            self._print_json(analysis_to_dict(analysis))
            return

        if not analysis.has_vulnerabilities:
            self.console.print("✅ [green]No vulnerabilities found![/green]")
            return

        self.console.print("🚨 [bold red]Security Vulnerabilities Found[/bold red]")
        self.console.print("=" * 50)
        self.console.print("\n[bold]Summary:[/bold]")
        self.console.print(f"  Total vulnerabilities: {analysis.vulnerability_count}")
        self.console.print(f"  High/Critical severity: {analysis.high_severity_count}")
        self.console.print("\n[bold]Details:[/bold]\n")

        for vd in analysis.vulnerable_dependencies:
            vuln = vd.vulnerability
            self.console.print(f"📦 {vd.dependency.name} ({vd.dependency.version})", markup=False)
            self.console.print(f"   🔍 Vulnerability: {vuln.id}", markup=False)
            self.console.print(f"   ⚠️  Severity: {severity_marker(vuln.severity)} {vuln.severity}", markup=False)
            if vuln.summary:
                self.console.print(f"   📝 Summary: {vuln.summary}", markup=False)
            self.console.print(f"   🔧 Fix: {vd.recommended_fix}\n", markup=False)

    def report_typosquats(self, matches: List[TyposquatMatch], output_format: str = "table") -> None:
        if _check_format(output_format) == "json":
            self._print_json({
                "summary": {"suspicious_gems": len(matches)},
                "matches": [match.to_dict() for match in matches],
            })
            return

        if not matches:
            self.console.print("✅ [green]No suspicious gem names found![/green]")
            return

        table = Table(title=f"⚠️  {len(matches)} potential typosquat(s)")
        table.add_column("Gem", style="bold")
        table.add_column("Version")
        table.add_column("Looks like")
        table.add_column("Similarity", justify="right")
        table.add_column("Target downloads", justify="right")
        table.add_column("Risk")
        for match in matches:
            table.add_row(
                match.gem_name,
                match.version,
                match.suspected_target,
                f"{match.similarity_score:.2f}",
                f"{match.target_downloads:,}",
                f"{severity_marker(match.risk_level.value)} {match.risk_level.value}",
            )
        self.console.print(table)

    def report_fix_result(self, result: FixResult, output_format: str = "table") -> None:
        if _check_format(output_format) == "json":
            self._print_json(result.to_dict())
            return

        if result.status == FixStatus.DRY_RUN:
            self.console.print("\n🔍 [bold]Planned fixes (dry run):[/bold]")
        elif result.status == FixStatus.COMPLETED and result.fixes:
            self.console.print("\n✅ [bold]Applied fixes:[/bold]")

        for fix in result.fixes:
            self.console.print(
                f"{severity_marker(fix.severity)} {fix.gem_name}: {fix.current_version} → {fix.target_version}"
                f" ({fix.vulnerability_id})",
                markup=False,
            )
        for fix in result.failed:
            self.console.print(f"❌ Failed to update {fix.gem_name}", markup=False)

        self.console.print(result.message, markup=False)
