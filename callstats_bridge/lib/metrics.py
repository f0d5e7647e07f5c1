from __future__ import annotations
import logging
import os
from typing import Optional

import datadog

logger = logging.getLogger(__name__)

FEATURE_METRIC_PREFIX = 'confmon'
PROJECT_METRIC_PREFIX = 'callstats_bridge'
METRIC_PREFIX = f'{FEATURE_METRIC_PREFIX}.{PROJECT_METRIC_PREFIX}'

METRIC_CATEGORY_EVENT_DISPATCH = f'{FEATURE_METRIC_PREFIX}.category:event_dispatch'
METRIC_CATEGORY_BACKEND_CALL = f'{FEATURE_METRIC_PREFIX}.category:backend_call'
METRIC_CATEGORY_STREAM_STATS = f'{FEATURE_METRIC_PREFIX}.category:stream_stats'
METRIC_CATEGORY_ERROR = f'{FEATURE_METRIC_PREFIX}.category:error'
METRIC_CATEGORIES = [
  METRIC_CATEGORY_EVENT_DISPATCH,
  METRIC_CATEGORY_BACKEND_CALL,
  METRIC_CATEGORY_STREAM_STATS,
  METRIC_CATEGORY_ERROR
]

SERVICE_TAG = f'service:{os.getenv("DD_SERVICE", "callstats-bridge")}'

# default tags to apply to all metrics submitted by this statsd client
DEFAULT_TAGS = [SERVICE_TAG]

datadog_options = {
  'statsd_host': os.getenv('DD_AGENT_HOST'),
  'statsd_port': 8125,
  'statsd_constant_tags': DEFAULT_TAGS
}
logger.debug(f'Initializing datadog with options {datadog_options}')
datadog.initialize(**datadog_options)

statsd = datadog.statsd


def report_event_received(event_type: str) -> None:
  """Reports metric indicating a conference lifecycle event was delivered to the dispatcher.

  :param event_type: the event's 'type' tag
  :return: None
  """
  statsd.increment(
      f'{METRIC_PREFIX}.event_received',
      sample_rate=1,
      tags=[METRIC_CATEGORY_EVENT_DISPATCH, f'event_type:{event_type}'])


def report_unknown_event(event_type: str) -> None:
  """Reports metric indicating an event matched no classification rule.

  :param event_type: the event's 'type' tag
  :return: None
  """
  statsd.increment(
      f'{METRIC_PREFIX}.unknown_event',
      sample_rate=1,
      tags=[METRIC_CATEGORY_EVENT_DISPATCH, f'event_type:{event_type}'])


def report_correlation_miss(role: str) -> None:
  """Reports metric indicating an event referenced a connection that is not registered.

  :param role: the connection role that was looked up
  :return: None
  """
  _report_error('correlation_miss', [f'connection_role:{role}'])


def report_validation_error() -> None:
  """Reports metric indicating a malformed event or an adapter call with missing/unknown
  arguments.

  :return: None
  """
  _report_error('validation_error')


def report_configuration_error() -> None:
  """Reports metric indicating the monitoring app id or secret is missing.

  :return: None
  """
  _report_error('configuration_error')


def report_not_initialized() -> None:
  """Reports metric indicating a report was dropped because the monitoring session was not
  initialized yet.

  :return: None
  """
  _report_error('not_initialized')


def report_dispatch_error() -> None:
  """Reports metric indicating the dispatcher caught an unexpected exception.

  :return: None
  """
  _report_error('dispatch_error')


def report_backend_failure(operation: str, error_code: Optional[str] = None) -> None:
  """Reports metric indicating the monitoring backend reported a failure for :operation.

  :param operation: 'initialize' or 'add_connection'
  :param error_code: backend status code, if any
  :return: None
  """
  tags = [f'operation:{operation}']
  if error_code is not None:
    tags.append(f'error_code:{error_code}')
  _report_error('backend_failure', tags)


def report_event_source_decode_error() -> None:
  """Reports metric indicating a message from the event source could not be decoded into an event.

  :return: None
  """
  _report_error('event_source_decode_error')


def report_pubsub_error() -> None:
  """Reports metric indicating the Pub/Sub event source threw an exception.

  :return: None
  """
  _report_error('pubsub_error')


def report_google_auth_error() -> None:
  """Reports metric indicating that fetching the GCP credentials for the bridge threw an
  exception.

  :return: None
  """
  _report_error('google_auth_error')


def report_terminated_with_error() -> None:
  """Reports a metric that should be recorded whenever the bridge terminates due to an unhandled
  exception.

  :return: None
  """
  _report_error('terminated_with_error')


def report_session_initialized() -> None:
  _report_backend_call('session_initialized')


def report_connection_registered(role: str) -> None:
  _report_backend_call('connection_registered', [f'connection_role:{role}'])


def report_fabric_event_sent(event_name: str) -> None:
  _report_backend_call('fabric_event_sent', [f'fabric_event:{event_name}'])


def report_webrtc_error_reported(function_name: str) -> None:
  _report_backend_call('webrtc_error_reported', [f'webrtc_function:{function_name}'])


# pylint: disable=unsubscriptable-object
def report_stream_rtt(rtt: float, ssrc: Optional[str] = None) -> None:
  """Reports the round trip time of an outbound stream, as delivered by the backend stats
  callback.

  :param rtt: round trip time in milliseconds
  :param ssrc: the stream's SSRC
  :return: None
  """
  _report_stream_gauge('outbound_rtt', rtt, ssrc)


def report_stream_fraction_loss(fraction_loss: float, ssrc: Optional[str] = None) -> None:
  """Reports the fraction loss of an inbound stream, as delivered by the backend stats callback.

  :param fraction_loss: fraction of packets lost, between 0 and 1
  :param ssrc: the stream's SSRC
  :return: None
  """
  _report_stream_gauge('inbound_fraction_loss', fraction_loss, ssrc)


def _report_stream_gauge(metric_name: str, value: float, ssrc: Optional[str]) -> None:
  tags = [METRIC_CATEGORY_STREAM_STATS]
  if ssrc is not None:
    tags.append(f'ssrc:{ssrc}')
  statsd.gauge(f'{METRIC_PREFIX}.{metric_name}', value, sample_rate=1, tags=tags)


def _report_backend_call(call_name: str, tags: Optional[list] = None) -> None:
  tags = tags or []
  tags.append(METRIC_CATEGORY_BACKEND_CALL)
  statsd.increment(f'{METRIC_PREFIX}.{call_name}', sample_rate=1, tags=tags)


def _report_error(error_type: str, tags: Optional[list] = None) -> None:
  tags = tags or []
  tags.append(METRIC_CATEGORY_ERROR)
  tags.append(f'{FEATURE_METRIC_PREFIX}.error_type:{PROJECT_METRIC_PREFIX}.{error_type}')
  statsd.increment(
      f'{METRIC_PREFIX}.error',
      sample_rate=1,
      tags=tags)
