"""
Main application entry point
Starts the intercepting proxy with the forwarder addon, or runs a policy command
"""

import argparse
import sys
import structlog

from shyhurricane.core.config import ApplicationConfig
from shyhurricane.core.logging import configure_logging
from shyhurricane.forwarding.policy_store import (
    PREF_MCP_SERVER_URL,
    PREF_MIN_CONF,
    PREF_MIN_SEV,
    PREF_ONLY_IN_SCOPE,
)
from shyhurricane.interception.application import build_addon
from shyhurricane.interception.proxy_server import ProxyServer
from shyhurricane.cli.policy_manager import (
    forward_findings_command,
    set_policy_command,
    show_policy_command,
)
from shyhurricane.models.finding import Confidence, Severity

logger = structlog.get_logger()


def parse_arguments(argv=None):
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        description="ShyHurricane traffic and finding forwarder",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --scope '^https://([a-z0-9-]+\\.)*example\\.com/'   Start the proxy
  python main.py --show-policy                                       Show the forwarding policy
  python main.py --set-server-url http://collector:8000              Change the collection service
  python main.py --set-min-severity MEDIUM                           Raise the severity threshold
  python main.py --forward-findings findings.json                    Forward a findings file
        """
    )

    # Policy Management
    parser.add_argument(
        "--show-policy",
        action="store_true",
        help="Show the persisted forwarding policy"
    )

    parser.add_argument(
        "--set-server-url",
        metavar="URL",
        help="Set the collection service base URL"
    )

    parser.add_argument(
        "--set-only-in-scope",
        choices=["true", "false"],
        help="Forward only in-scope traffic and findings"
    )

    parser.add_argument(
        "--set-min-confidence",
        choices=[c.name for c in Confidence],
        type=str.upper,
        help="Weakest finding confidence to forward"
    )

    parser.add_argument(
        "--set-min-severity",
        choices=[s.name for s in Severity],
        type=str.upper,
        help="Weakest finding severity to forward"
    )

    parser.add_argument(
        "--forward-findings",
        metavar="FILE",
        help="Forward the findings in a JSON file and exit"
    )

    # Proxy Options
    parser.add_argument(
        "--host",
        help="Host to bind the proxy (default: from configuration, 127.0.0.1)"
    )

    parser.add_argument(
        "--port",
        type=int,
        help="Port to bind the proxy (default: from configuration, 8080)"
    )

    parser.add_argument(
        "--scope",
        action="append",
        metavar="PATTERN",
        help="Regular expression for in-scope URLs (repeatable)"
    )

    return parser.parse_args(argv)


def run_cli_command(args, config):
    """Execute policy commands; returns None when no command was given"""
    settings = [
        (args.set_server_url, PREF_MCP_SERVER_URL),
        (args.set_only_in_scope, PREF_ONLY_IN_SCOPE),
        (args.set_min_confidence, PREF_MIN_CONF),
        (args.set_min_severity, PREF_MIN_SEV),
    ]
    requested = [(key, value) for value, key in settings if value is not None]

    if requested:
        for key, value in requested:
            exit_code = set_policy_command(key, value, config)
            if exit_code:
                return exit_code
        return 0
    elif args.show_policy:
        return show_policy_command(config)
    elif args.forward_findings:
        return forward_findings_command(args.forward_findings, args.scope or config.proxy.scope, config)

    return None


def main(argv=None):
    args = parse_arguments(argv)

    config = ApplicationConfig()
    configure_logging(config.logging.log_level, str(config.logging.log_dir))

    exit_code = run_cli_command(args, config)
    if exit_code is not None:
        return exit_code

    if args.host:
        config.proxy.proxy_host = args.host
    if args.port:
        config.proxy.proxy_port = args.port

    addon = build_addon(config, scope=args.scope)
    ProxyServer(config, addon).serve_forever()
    return 0


if __name__ == "__main__":
    sys.exit(main())
