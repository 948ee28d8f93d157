import asyncio
import logging
from functools import partial

from logview.config import Settings
from logview.core.controller import SessionState, ViewController
from logview.integration.live_subscriber import LiveEventSubscriber, ReconnectPolicy
from logview.integration.rest_client import SnapshotFetcher

logger = logging.getLogger("logview")


def build_controller(settings: Settings) -> ViewController:
    fetcher = SnapshotFetcher(settings.api_url, timeout=settings.request_timeout)
    policy = ReconnectPolicy(delay=settings.reconnect_delay, delay_max=settings.reconnect_delay_max)
    factory = partial(_subscriber, settings.api_url, policy)
    return ViewController.from_settings(settings, fetcher, subscriber_factory=factory)


def _subscriber(url, policy, on_record, on_stats):
    return LiveEventSubscriber(url, on_record, on_stats, reconnect=policy)


def _summarize(state: SessionState) -> None:
    stats = state.stats
    newest = state.visible[0] if state.visible else None
    logger.info(
        "visible=%d history=%d | INFO=%d WARN=%d ERROR=%d total=%d errorRate=%s%s",
        len(state.visible),
        len(state.store),
        stats.info,
        stats.warn,
        stats.error,
        stats.total,
        stats.error_rate,
        f" | latest [{newest.level.value}] {newest.service}: {newest.message}" if newest else "",
    )


async def run(settings: Settings) -> None:
    controller = build_controller(settings)
    controller.subscribe(_summarize)
    try:
        async with controller:
            await asyncio.Event().wait()
    finally:
        controller.fetcher.close()


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    settings = Settings.from_env()
    logger.info("Watching logs at %s (%s mode)", settings.api_url, "real-time" if settings.realtime else "polling")
    try:
        asyncio.run(run(settings))
    except KeyboardInterrupt:
        logger.info("Stopped")


if __name__ == "__main__":
    main()
