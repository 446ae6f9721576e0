"""
Forwarding Policy CLI
Command-line interface for viewing and changing the persisted policy
"""

from pathlib import Path
from typing import Iterable, Optional
import structlog
from rich.console import Console
from rich.table import Table

from shyhurricane.core.config import ApplicationConfig
from shyhurricane.forwarding.forwarder import Forwarder
from shyhurricane.forwarding.pipeline import ForwardingPipeline
from shyhurricane.forwarding.policy_store import (
    PREF_MCP_SERVER_URL,
    PREF_MIN_CONF,
    PREF_MIN_SEV,
    PREF_ONLY_IN_SCOPE,
)
from shyhurricane.interception.adapters import load_findings_file
from shyhurricane.interception.application import build_policy_store
from shyhurricane.interception.scope import ScopeMatcher

logger = structlog.get_logger()
console = Console()


class PolicyManager:
    """
    CLI interface for policy management
    """

    def __init__(self, config: Optional[ApplicationConfig] = None):
        self.config = config or ApplicationConfig()
        self.store = build_policy_store(self.config)

    def show_policy(self) -> bool:
        """Print the current policy as a table"""
        policy = self.store.snapshot()

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Setting", style="cyan", width=16)
        table.add_column("Value")
        table.add_column("Description", style="dim")

        descriptions = {
            PREF_ONLY_IN_SCOPE: "Forward only in-scope traffic and findings",
            PREF_MCP_SERVER_URL: "Collection service base URL",
            PREF_MIN_CONF: "Weakest confidence forwarded",
            PREF_MIN_SEV: "Weakest severity forwarded",
        }

        for key, value in policy.to_dict().items():
            table.add_row(key, str(value), descriptions[key])

        console.print("\n[bold blue]Forwarding Policy[/bold blue]\n")
        console.print(table)
        console.print(f"\n[dim]Index endpoint:    {policy.index_url}[/dim]")
        console.print(f"[dim]Findings endpoint: {policy.findings_url}[/dim]")
        console.print(f"[dim]Stored in {self.config.forwarding.preferences_file}[/dim]")
        return True

    def set_policy(self, key: str, value: str) -> bool:
        """Change and persist one policy field"""
        try:
            policy = self.store.set_from_string(key, value)
        except ValueError as e:
            console.print(f"[red]Error: {e}[/red]")
            return False
        except OSError as e:
            console.print(f"[red]Cannot save policy to {self.config.forwarding.preferences_file}: {e}[/red]")
            return False

        console.print(f"[green]✅ {key} set to {policy.to_dict()[key]}[/green]")
        return True

    def forward_findings(self, path: Path, scope: Iterable[str] = ()) -> bool:
        """Forward a findings file once using the persisted policy"""
        try:
            findings = load_findings_file(path, ScopeMatcher(scope))
        except (OSError, ValueError) as e:
            console.print(f"[red]Cannot read findings from {path}: {e}[/red]")
            return False

        forwarder = Forwarder(timeout=self.config.forwarding.request_timeout_seconds or None)
        pipeline = ForwardingPipeline(self.store, forwarder)

        for finding in findings:
            pipeline.handle_finding(finding)

        stats = {**pipeline.get_stats(), **forwarder.get_stats()}
        console.print(
            f"[green]Forwarded {stats['findings_forwarded']} of {len(findings)} findings[/green] "
            f"[dim](rejected by policy: {stats['findings_rejected']}, "
            f"delivery failures: {stats['failed'] + stats['rejected']})[/dim]"
        )
        return stats["errors"] == 0


# CLI command functions
def show_policy_command(config: Optional[ApplicationConfig] = None):
    """CLI command to show the policy"""
    manager = PolicyManager(config)
    success = manager.show_policy()
    return 0 if success else 1


def set_policy_command(key: str, value: str, config: Optional[ApplicationConfig] = None):
    """CLI command to change one policy field"""
    manager = PolicyManager(config)
    success = manager.set_policy(key, value)
    return 0 if success else 1


def forward_findings_command(path: str, scope: Iterable[str] = (), config: Optional[ApplicationConfig] = None):
    """CLI command to forward a findings file"""
    manager = PolicyManager(config)
    success = manager.forward_findings(Path(path), scope)
    return 0 if success else 1
