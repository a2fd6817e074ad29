"""
HTTP control surface for raceprobe.

Endpoints:
    POST /set/config  - store a configuration (JSON body)
    GET  /get/config  - return the stored configuration
    POST /start       - run a race test with the stored configuration

The stored configuration is a single in-memory slot owned by this server;
each run gets its own copy.
"""

import dataclasses
from typing import Optional

from aiohttp import web

from .config import ConfigurationError, RaceConfig
from .engine import run_race_test
from .report import dumps_report
from .utils import setup_logging

logger = setup_logging("api_server")

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000


class ConfigStore:
    """Single-slot configuration store."""

    def __init__(self, config: Optional[RaceConfig] = None):
        self._config = config

    def get(self) -> Optional[RaceConfig]:
        return self._config

    def set(self, config: RaceConfig):
        self._config = config

    def snapshot(self) -> RaceConfig:
        """Copy of the stored configuration for a single run."""
        if self._config is None:
            return RaceConfig()
        return dataclasses.replace(self._config, targets=list(self._config.targets))


class ControlSurface:
    """Request handlers bound to one ConfigStore."""

    def __init__(self, store: Optional[ConfigStore] = None):
        self.store = store or ConfigStore()

    async def set_config(self, request: web.Request) -> web.Response:
        try:
            data = await request.json()
            config = RaceConfig.from_dict(data, require_targets=True)
        except ValueError as e:
            # json.JSONDecodeError and InvalidConfiguration are both ValueErrors
            logger.warning(f"Rejected configuration: {e}")
            return web.json_response({"message": "invalid JSON data"}, status=400)

        config.apply_defaults()
        self.store.set(config)
        logger.info(f"Configuration saved: {len(config.targets)} target(s), count={config.count}")
        return web.json_response({"message": "configuration saved"})

    async def get_config(self, request: web.Request) -> web.Response:
        config = self.store.get()
        if config is None or not config.targets:
            return web.json_response({"message": "no configuration set"}, status=400)
        return web.json_response(config.to_dict())

    async def start(self, request: web.Request) -> web.Response:
        config = self.store.snapshot()
        try:
            result = await run_race_test(config)
        except ConfigurationError as e:
            logger.error(f"Race test aborted: {e}")
            return web.json_response({"message": f"error: {e}"}, status=500)

        if config.verbose:
            for error in result.errors:
                logger.info(f"[VERBOSE] {error}")

        # Bodies are returned unescaped
        return web.Response(
            text=dumps_report(result.report()),
            content_type="application/json",
        )


def create_app(store: Optional[ConfigStore] = None) -> web.Application:
    """Build the control surface application."""
    surface = ControlSurface(store)
    app = web.Application()
    app.router.add_get("/get/config", surface.get_config)
    app.router.add_post("/set/config", surface.set_config)
    app.router.add_post("/start", surface.start)
    return app


def run_server(
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
    config: Optional[RaceConfig] = None,
):
    """Run the control surface until interrupted."""
    logger.info(f"Control surface listening on http://{host}:{port}")
    web.run_app(create_app(ConfigStore(config)), host=host, port=port, print=None)
