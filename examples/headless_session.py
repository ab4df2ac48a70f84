#!/usr/bin/env python3
"""
Headless SGAI session.

Runs the engine against the stream and sinks configured in
settings/config.yaml (or SGAI_* environment variables) with a simulated
player, then prints the Prometheus metrics collected during the session.

    $ SGAI_ENGINE__STREAM_URL=https://live.example.com/master.m3u8 \
      SGAI_ENGINE__EVENT_SINK_URL=https://sink.example.com/events \
      python examples/headless_session.py 60
"""

import asyncio
import sys

from prometheus_client import CollectorRegistry, generate_latest

from sgai_client import EngineConfig, HeadlessMediaPlayer, PrometheusMetrics, SgaiEngine, get_settings
from sgai_client.log_config import configure_logging, get_context_logger


async def run_session(duration_sec: float) -> None:
    settings = get_settings()
    configure_logging(settings.log_level, json_output=settings.log_json)
    logger = get_context_logger("headless_session")

    registry = CollectorRegistry()
    config = EngineConfig.from_settings(settings)

    async with SgaiEngine(
        config, HeadlessMediaPlayer(), metrics=PrometheusMetrics(registry=registry)
    ) as engine:
        logger.info("Session running", session_id=engine.session_id, duration_sec=duration_sec)
        await asyncio.sleep(duration_sec)

    print(generate_latest(registry).decode())


def main():
    duration_sec = float(sys.argv[1]) if len(sys.argv) > 1 else 60.0
    asyncio.run(run_session(duration_sec))


if __name__ == "__main__":
    main()
