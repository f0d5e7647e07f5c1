import asyncio
import logging
import sys

from callstats_bridge.event_bridge import bridge_runner, config


def run() -> None:
  monitoring_config = config.monitoring_config()
  logging.basicConfig(
      level=config.log_level(monitoring_config),
      format='%(asctime)s %(name)s [%(levelname)s] %(message)s',
      stream=sys.stdout,
      force=True)

  asyncio.run(
      bridge_runner.main(
          monitoring_config,
          config.PUBSUB_SUBSCRIPTION_ID,
          config.CALLSTATS_API_URL))


if __name__ == '__main__':
  run()
