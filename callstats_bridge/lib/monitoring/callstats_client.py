from __future__ import annotations
import logging
from collections.abc import Callable
from typing import Any, Optional, Protocol

from callstats_bridge.lib import metrics
from callstats_bridge.lib.exceptions import ConfigurationError, ValidationError
from callstats_bridge.lib.monitoring import constants
from callstats_bridge.lib.monitoring.monitoring_config import MonitoringConfig

logger = logging.getLogger(__name__)

# backend completion callback: (status code, descriptive message)
CompletionCallback = Callable[[str, Optional[str]], None]

# backend stats callback, receives a stats report of the form {'streams': {<ssrc>: {...}}}
StatsCallback = Callable[[dict], None]


class MonitoringBackend(Protocol):
  """Primitives of the call-quality monitoring backend.

  Every primitive returns immediately; completion is only observed through the callbacks.
  """

  def initialize(self, app_id: str, app_secret: str, user_id: str,
                 on_init: CompletionCallback, on_stats: StatsCallback, config: dict) -> Any:
    ...

  def add_connection(self, handle: Any, remote_user_id: str, usage: str, conference_id: str,
                     on_complete: CompletionCallback) -> None:
    ...

  def report_error(self, handle: Any, conference_id: str, function_code: str,
                   error: Any) -> None:
    ...

  def send_event(self, handle: Any, event_code: str, conference_id: str) -> None:
    ...


# pylint: disable=unsubscriptable-object
class CallstatsClient:
  """Thin wrapper validating arguments before they reach the monitoring backend primitives."""

  def __init__(self, backend: MonitoringBackend, monitoring_config: MonitoringConfig) -> None:
    self.backend = backend
    self.monitoring_config = monitoring_config

  def initialize(self, app_id: Optional[str], app_secret: Optional[str],
                 local_user_id: Optional[str],
                 init_callback: Optional[CompletionCallback] = None) -> Any:
    """Starts a monitoring session for :local_user_id.

    The outcome is reported later through :init_callback; a failed initialization can be retried
    by calling this again.

    :param app_id: application id issued by the monitoring backend
    :param app_secret: application secret issued by the monitoring backend
    :param local_user_id: id of the local user
    :param init_callback: called with the backend status code and message
    :return: the backend session handle
    """
    if not app_id or not app_secret:
      raise ConfigurationError('Cannot initialize monitoring session without app id and secret')
    if not local_user_id:
      raise ValidationError('Cannot initialize monitoring session without a local user id')

    logger.info(f'Initializing monitoring session for local user {local_user_id}')

    def on_init(error_code: str, message: Optional[str] = None) -> None:
      logger.info(f'Initialize return status: errCode={error_code} errMsg={message}')
      if error_code != constants.BACKEND_STATUS_SUCCESS:
        metrics.report_backend_failure('initialize', error_code)
      else:
        metrics.report_session_initialized()
      if init_callback is not None:
        init_callback(error_code, message)

    session_handle = self.backend.initialize(
        app_id,
        app_secret,
        local_user_id,
        on_init,
        self.on_stats,
        self.monitoring_config.backend_config_params())
    logger.debug(f'Backend initialize returned {session_handle}')
    return session_handle

  def register_connection(self, handle: Any, remote_user_id: Optional[str],
                          conference_id: Optional[str],
                          callback: Optional[CompletionCallback] = None) -> None:
    """Registers a peer connection (fabric) with the backend, always in multiplex usage.

    :param handle: opaque peer connection handle
    :param remote_user_id: the remote end of the connection
    :param conference_id: conference the connection belongs to
    :param callback: called with the backend status code and message
    :return: None
    """
    if any(_is_missing(value) for value in [handle, remote_user_id, conference_id]):
      raise ValidationError(f'Faulty Parameters! handle={handle} remote_user_id={remote_user_id} '
                            f'conference_id={conference_id}')

    logger.info(f'Registering connection {handle} to {remote_user_id} in conference '
                f'{conference_id}')

    def on_complete(error_code: str, message: Optional[str] = None) -> None:
      logger.info(f'Monitoring status for {handle}: {error_code} msg: {message}')
      if error_code != constants.BACKEND_STATUS_SUCCESS:
        metrics.report_backend_failure('add_connection', error_code)
      if callback is not None:
        callback(error_code, message)

    self.backend.add_connection(
        handle,
        remote_user_id,
        constants.FABRIC_USAGE_MULTIPLEX,
        conference_id,
        on_complete)

  def report_error(self, handle: Any, conference_id: str, function_name: str,
                   error: Any) -> None:
    """Reports a failed WebRTC operation on a registered connection.

    :param handle: opaque peer connection handle
    :param conference_id: conference the connection belongs to
    :param function_name: one of constants.WEBRTC_FUNCTIONS
    :param error: the error raised by the WebRTC operation
    :return: None
    """
    if function_name not in constants.WEBRTC_FUNCTIONS:
      raise ValidationError(f'Unknown WebRTC function {function_name}')
    logger.info(f'Reporting {function_name} error on {handle}: {error}')
    self.backend.report_error(handle, conference_id, function_name, error)
    metrics.report_webrtc_error_reported(function_name)

  def send_event(self, handle: Any, conference_id: str, event_name: str) -> None:
    """Sends a fabric event for a registered connection.

    :param handle: opaque peer connection handle
    :param conference_id: conference the connection belongs to
    :param event_name: one of constants.FABRIC_EVENTS
    :return: None
    """
    if event_name not in constants.FABRIC_EVENTS:
      raise ValidationError(f'Unknown fabric event {event_name}')
    logger.info(f'Sending fabric event {event_name} for {handle}')
    self.backend.send_event(handle, event_name, conference_id)
    metrics.report_fabric_event_sent(event_name)

  def on_stats(self, stats: dict) -> None:
    """Backend stats callback. Logs and reports the RTT of outbound streams and the fraction loss of
    inbound streams.

    :param stats: stats report of the form {'streams': {<ssrc>: {'reportType': ..., ...}}}
    :return: None
    """
    logger.debug(f'Received stats: {stats}')
    for ssrc, stream_stats in (stats.get('streams') or {}).items():
      report_type = stream_stats.get('reportType')
      if (report_type == constants.STATS_REPORT_TYPE_OUTBOUND and
          stream_stats.get('rtt') is not None):
        logger.debug(f'SSRC {ssrc} RTT is: {stream_stats["rtt"]}')
        metrics.report_stream_rtt(stream_stats['rtt'], ssrc)
      elif (report_type == constants.STATS_REPORT_TYPE_INBOUND and
            stream_stats.get('fractionLoss') is not None):
        logger.debug(f'SSRC {ssrc} inbound loss rate is: {stream_stats["fractionLoss"]}')
        metrics.report_stream_fraction_loss(stream_stats['fractionLoss'], ssrc)


def _is_missing(value: Any) -> bool:
  return value is None or value == ''
