from __future__ import annotations
import asyncio
import functools
import logging
import signal

import google.auth.exceptions

from callstats_bridge.lib import google_auth_client, metrics
from callstats_bridge.lib.exceptions import BridgeError
from callstats_bridge.lib.monitoring.callstats_client import CallstatsClient
from callstats_bridge.lib.monitoring.event_dispatcher import EventDispatcher
from callstats_bridge.lib.monitoring.http_backend import HttpMonitoringBackend
from callstats_bridge.lib.monitoring.monitoring_config import MonitoringConfig
from callstats_bridge.lib.monitoring.session_context import SessionContext
from callstats_bridge.lib.pubsub_event_source import PubSubEventSource

logger = logging.getLogger('callstats_bridge')


async def trigger_termination_request(termination_requested_event: asyncio.Event) -> None:
  """Requests graceful termination of the bridge.

  :param termination_requested_event: event that signals the event source to stop pulling
  :return: None
  """
  logger.info(f'Received graceful termination signal {signal.SIGTERM}')
  termination_requested_event.set()


async def main(monitoring_config: MonitoringConfig, pubsub_subscription_id: str,
               api_url: str) -> None:
  try:
    await _main(monitoring_config, pubsub_subscription_id, api_url)
  except Exception:  # pylint: disable=broad-except
    logger.exception('Callstats bridge failed with unhandled exception')
    metrics.report_terminated_with_error()
  finally:
    logger.info('Exiting callstats bridge')


# pylint:disable=unnecessary-lambda
async def _main(monitoring_config: MonitoringConfig, pubsub_subscription_id: str,
                api_url: str) -> None:
  # missing credentials are fatal before any event is consumed
  monitoring_config.validate()

  loop = asyncio.get_running_loop()
  termination_requested_event = asyncio.Event()
  term_fn = functools.partial(trigger_termination_request, termination_requested_event)
  loop.add_signal_handler(
      signal.SIGTERM,
      lambda: asyncio.create_task(term_fn()))

  try:
    gcp_project_id = await loop.run_in_executor(None, google_auth_client.get_gcp_project_id)
  except google.auth.exceptions.GoogleAuthError as err:
    metrics.report_google_auth_error()
    raise err
  if gcp_project_id is None:
    raise BridgeError('Unable to determine GCP project ID')

  backend = HttpMonitoringBackend(api_url)
  dispatcher = EventDispatcher(
      SessionContext(),
      CallstatsClient(backend, monitoring_config),
      monitoring_config)
  event_source = PubSubEventSource(gcp_project_id, pubsub_subscription_id)
  dispatcher.subscribe(event_source)

  try:
    await event_source.listen(termination_requested_event)
  finally:
    # in-flight reports are allowed to complete or fail on their own
    await backend.drain()
