"""
Proxy Server for mitmproxy Lifecycle Management

Manages starting and stopping mitmproxy with the forwarder addon attached.
"""

import asyncio
from typing import Optional
import structlog

from mitmproxy import options
from mitmproxy.tools import dump

from .addon import ForwarderAddon

logger = structlog.get_logger()


class ProxyServer:
    """
    Manages mitmproxy proxy server lifecycle

    mitmproxy's master must be created inside a running event loop, so the
    server is driven through the async run() coroutine.
    """

    def __init__(self, config, addon: ForwarderAddon):
        """
        Initialize the proxy server

        Args:
            config: Application configuration
            addon: Forwarder addon to attach
        """
        self.config = config
        self.addon = addon
        self.logger = logger.bind(component="proxy_server")

        self._master: Optional[dump.DumpMaster] = None

    async def run(self):
        """
        Start the proxy and block until it shuts down
        """
        if self._master:
            self.logger.warning("Proxy server already running")
            return

        opts = options.Options(
            listen_host=self.config.proxy.proxy_host,
            listen_port=self.config.proxy.proxy_port,
            # Certificate directory
            confdir=str(self.config.proxy.confdir),
        )

        self._master = dump.DumpMaster(
            opts,
            with_termlog=False,
            with_dumper=False
        )
        self._master.addons.add(self.addon)

        self.logger.info(
            "Proxy server started",
            host=self.config.proxy.proxy_host,
            port=self.config.proxy.proxy_port,
            confdir=str(self.config.proxy.confdir)
        )

        try:
            await self._master.run()
        finally:
            self._master = None
            self.logger.info("Proxy server stopped")

    def serve_forever(self):
        """Run the proxy on a fresh event loop until interrupted"""
        try:
            asyncio.run(self.run())
        except KeyboardInterrupt:
            self.logger.info("Interrupted")
