from typing import List, Optional

from rich.console import Console
from rich.prompt import Confirm

from ..models import FixPlanEntry


def severity_marker(severity: Optional[str]) -> str:
    value = (severity or "").lower()
    if "critical" in value:
        return "🔴"
    if "high" in value:
        return "🟠"
    if "medium" in value:
        return "🟡"
    return "🟢"


class ConsoleConfirmer:
    """Shows the fix plan and asks for a single yes/no answer.

    Returns the whole plan on "yes" and an empty list otherwise.
    """

    def __init__(self, console: Console):
        self.console = console

    def select_subset(self, candidates: List[FixPlanEntry]) -> List[FixPlanEntry]:
        self.console.print("\n🔧 [bold]Planned Fixes:[/bold]")
        self.console.print("=" * 50)
        for fix in candidates:
            self.console.print(
                f"{severity_marker(fix.severity)} {fix.gem_name}: "
                f"{fix.current_version} → {fix.target_version}"
            )
            self.console.print(f"   Fixes: {fix.vulnerability_id}")

        self.console.print("\n⚠️  This will modify your Gemfile.lock and may require bundle install.")
        if Confirm.ask("Do you want to proceed?", default=False, console=self.console):
            return list(candidates)
        return []
