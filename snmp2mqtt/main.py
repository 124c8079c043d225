"""
snmp2mqtt - Application Entry Point.

Usage:
    snmp2mqtt --config config/config.yaml
    snmp2mqtt --mock --log-level DEBUG
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

from snmp2mqtt.core.config import ConfigError, Settings, get_settings, load_targets
from snmp2mqtt.mqtt.publisher import MqttPublisher
from snmp2mqtt.services.bridge import SnmpBridge

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def create_engine(settings: Settings):
    """Real pysnmp engine, or the mock one when SNMP_MOCK is set."""
    if settings.snmp_mock:
        from snmp2mqtt.snmp.mock_engine import MockSnmpEngine

        return MockSnmpEngine()

    from snmp2mqtt.snmp.engine import AsyncSnmpEngine

    return AsyncSnmpEngine()


async def run(settings: Settings) -> None:
    """
    Run the bridge until SIGINT/SIGTERM.

    Startup: load targets, connect MQTT, start one polling session per target.
    Shutdown: stop sessions and scheduler, publish offline, disconnect.
    """
    targets = load_targets(settings.config_file)
    if not targets:
        logger.warning("No targets configured in %s", settings.config_file)

    publisher = MqttPublisher(settings.mqtt)
    bridge = SnmpBridge(
        targets,
        create_engine(settings),
        publisher,
        homeassistant=settings.homeassistant,
        reconnect_delay=settings.reconnect_delay_seconds,
    )

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops have no add_signal_handler
            pass

    publisher_task = asyncio.create_task(publisher.run(stop_event))
    logger.info("Starting snmp2mqtt...")
    await bridge.start()

    await stop_event.wait()

    logger.info("Shutting down snmp2mqtt...")
    await bridge.stop()
    await publisher_task


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Poll SNMP devices and publish values to MQTT")
    parser.add_argument(
        "--config",
        type=Path,
        help="Targets YAML file (default: CONFIG_FILE or config/config.yaml)",
    )
    parser.add_argument("--log-level", help="Override LOG_LEVEL (e.g. DEBUG)")
    parser.add_argument(
        "--mock",
        action="store_true",
        help="Generate values instead of sending SNMP requests",
    )
    args = parser.parse_args(argv)

    settings = get_settings()
    overrides: dict = {}
    if args.config:
        overrides["config_file"] = args.config
    if args.log_level:
        overrides["log_level"] = args.log_level
    if args.mock:
        overrides["snmp_mock"] = True
    if overrides:
        settings = settings.model_copy(update=overrides)

    configure_logging(settings.log_level)

    try:
        asyncio.run(run(settings))
    except ConfigError as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
