"""
mitmproxy Addon for Event Forwarding

Hooks into mitmproxy's event system and hands every completed exchange to
the forwarding pipeline. Also exposes commands to forward scanner findings
and to inspect or change the operator policy at runtime.
"""

import asyncio
from collections.abc import Sequence
import structlog

from mitmproxy import command, ctx, exceptions, http, types

from shyhurricane.forwarding.pipeline import ForwardingPipeline
from shyhurricane.forwarding.policy_store import PolicyStore
from shyhurricane.models.finding import Finding
from .adapters import exchange_from_flow, load_findings_file
from .scope import ScopeMatcher

logger = structlog.get_logger()

NAME = "ShyHurricane"
SCOPE_OPTION = "shyhurricane_scope"


class ForwarderAddon:
    """
    mitmproxy addon for selective forwarding

    This addon hooks into mitmproxy's event lifecycle:
    - load: register the scope option
    - configure: apply scope changes
    - response: forward the completed exchange (in a worker thread)
    - done: stop background delivery
    """

    def __init__(self, policy_store: PolicyStore, pipeline: ForwardingPipeline, scope: ScopeMatcher):
        """
        Initialize the addon

        Args:
            policy_store: Operator policy, already loaded
            pipeline: Pipeline that receives translated events
            scope: Scope used to flag requests as in scope
        """
        self.policy_store = policy_store
        self.pipeline = pipeline
        self.scope = scope
        self.logger = logger.bind(component="addon")

    def load(self, loader):
        """Register addon options with mitmproxy"""
        loader.add_option(
            name=SCOPE_OPTION,
            typespec=Sequence[str],
            default=list(self.scope.patterns),
            help="Regular expressions for in-scope URLs; matching requests are flagged in scope."
        )
        self.logger.info(f"{NAME} addon loaded")

    def configure(self, updated):
        if SCOPE_OPTION in updated:
            try:
                self.scope.update(getattr(ctx.options, SCOPE_OPTION))
            except ValueError as e:
                raise exceptions.OptionsError(str(e)) from e

            if self.policy_store.snapshot().only_in_scope and not self.scope.patterns:
                self.logger.warning("Only in-scope traffic is forwarded but the scope is empty")

    async def response(self, flow: http.HTTPFlow):
        """
        Called when a response is received

        Forwarding runs in a worker thread so that a slow collector never
        stalls the proxy's event loop.
        """
        await asyncio.to_thread(self._forward_flow, flow)

    def _forward_flow(self, flow: http.HTTPFlow):
        try:
            exchange = exchange_from_flow(flow, self.scope)
        except Exception as e:
            self.logger.error("Error in response hook", error=str(e), url=flow.request.pretty_url)
            return

        self.pipeline.handle_exchange(exchange)

    def handle_finding(self, finding: Finding) -> bool:
        """Entry point for findings produced by a scanner next to the proxy"""
        return self.pipeline.handle_finding(finding)

    def done(self):
        """Called when the addon shuts down"""
        self.pipeline.forwarder.shutdown()
        self.logger.info(f"{NAME} addon unloaded", **self.get_stats())

    @command.command("shyhurricane.findings")
    def forward_findings(self, path: types.Path) -> None:
        """Forward every finding in a JSON findings file."""
        try:
            findings = load_findings_file(path, self.scope)
        except (OSError, ValueError) as e:
            raise exceptions.CommandError(f"Cannot read findings from {path}: {e}") from e

        forwarded = sum(1 for finding in findings if self.handle_finding(finding))
        self.logger.info("Findings file forwarded", file=str(path), total=len(findings), forwarded=forwarded)

    @command.command("shyhurricane.policy")
    def show_policy(self) -> str:
        """Show the current forwarding policy."""
        policy = self.policy_store.snapshot()
        return ", ".join(f"{key}={value}" for key, value in policy.to_dict().items())

    @command.command("shyhurricane.policy.set")
    def set_policy(self, key: str, value: str) -> None:
        """Change and save one policy field (onlyInScope, mcpServerUrl, minConfidence, minSeverity)."""
        try:
            self.policy_store.set_from_string(key, value)
        except ValueError as e:
            raise exceptions.CommandError(str(e)) from e
        except OSError as e:
            raise exceptions.CommandError(f"Cannot save policy: {e}") from e

    def get_stats(self) -> dict:
        """Get pipeline and delivery statistics"""
        return {
            **self.pipeline.get_stats(),
            **self.pipeline.forwarder.get_stats()
        }
