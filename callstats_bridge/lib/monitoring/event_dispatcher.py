"""Classifies conference lifecycle events and turns them into monitoring backend calls.

Every event goes through three steps:
 1) classification: the matcher registered for the event type maps the event to an Action, or to
    None when no rule applies
 2) correlation: except for initialize, the action targets the connection registered for
    (conference id, role) in the session context
 3) delegation: the CallstatsClient is called with the resolved connection handle

No exception leaves EventDispatcher.handle_event: a malformed event must not stop the event source.
"""
from __future__ import annotations
import functools
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from callstats_bridge.lib import metrics
from callstats_bridge.lib.exceptions import (
  ConfigurationError, CorrelationMiss, ValidationError)
from callstats_bridge.lib.monitoring import constants
from callstats_bridge.lib.monitoring.callstats_client import CallstatsClient
from callstats_bridge.lib.monitoring.events import Event
from callstats_bridge.lib.monitoring.monitoring_config import MonitoringConfig
from callstats_bridge.lib.monitoring.session_context import (
  ConnectionKey, RegisteredConnection, SessionContext)

logger = logging.getLogger(__name__)

EventHandler = Callable[[Event], None]

# Actions an event can be classified into
ACTION_KINDS = [
    'none',
    'initialize',
    'register_connection',
    'send_fabric_event',
    'terminate_fabric',
    'report_error'
]
# Recognized event that is deliberately not reported
ACTION_NONE = ACTION_KINDS[0]
ACTION_INITIALIZE = ACTION_KINDS[1]
ACTION_REGISTER_CONNECTION = ACTION_KINDS[2]
ACTION_SEND_FABRIC_EVENT = ACTION_KINDS[3]
# Send fabricTerminated, then forget the connection
ACTION_TERMINATE_FABRIC = ACTION_KINDS[4]
ACTION_REPORT_ERROR = ACTION_KINDS[5]


class EventSource(Protocol):
  def subscribe(self, handler: EventHandler) -> None:
    ...


@dataclass(frozen=True)
# pylint: disable=unsubscriptable-object
class Action:
  """The monitoring call an event maps to. Fields other than kind are only set when the kind uses
  them.
  """
  # one of ACTION_KINDS
  kind: str
  # one of constants.CONNECTION_ROLES; the connection the action applies to
  role: Optional[str] = None
  # ACTION_INITIALIZE
  local_user_id: Optional[str] = None
  # ACTION_REGISTER_CONNECTION: the peer connection handle to register
  handle: Any = None
  # ACTION_SEND_FABRIC_EVENT / ACTION_TERMINATE_FABRIC: one of constants.FABRIC_EVENTS
  fabric_event: Optional[str] = None
  # ACTION_REPORT_ERROR: one of constants.WEBRTC_FUNCTIONS, and the reported error
  function_name: Optional[str] = None
  error: Any = None


def resolve_role(event: Event, default_role: str) -> str:
  """Maps event.data['for'] to a connection role, falling back to :default_role when the event does
  not name its plugin handle.

  :param event: the event to inspect
  :param default_role: role used when 'for' is absent
  :return: one of constants.CONNECTION_ROLES
  """
  handle_for = event.data.get('for')
  if handle_for is None:
    return default_role
  role = constants.CONNECTION_ROLE_BY_HANDLE_FOR.get(handle_for)
  if role is None:
    raise ValidationError(f'Cannot correlate {event.type} event for unknown handle {handle_for}')
  return role


def match_user_event(event: Event) -> Optional[Action]:
  if event.data.get('status') != constants.USER_STATUS_JOINING:
    return None
  username = event.user.username if event.user is not None else None
  if not username:
    raise ValidationError(f'Joining user event without a username: {event}')
  return Action(ACTION_INITIALIZE, local_user_id=username)


def match_subscriber_event(event: Event) -> Optional[Action]:
  return Action(ACTION_NONE)


def match_stream_event(event: Event) -> Optional[Action]:
  stream, handle_for = event.data.get('stream'), event.data.get('for')
  if stream == constants.STREAM_LOCAL and handle_for == constants.STREAM_FOR_MAIN:
    role = constants.CONNECTION_ROLE_LOCAL_MAIN
  elif stream == constants.STREAM_REMOTE and handle_for == constants.STREAM_FOR_SUBSCRIBER:
    role = constants.CONNECTION_ROLE_REMOTE_SUBSCRIBER
  else:
    return None
  return Action(ACTION_REGISTER_CONNECTION, role=role, handle=event.data.get('peerconnection'))


def match_screenshare_event(event: Event) -> Optional[Action]:
  status = event.data.get('status')
  if status == constants.SCREENSHARE_STATUS_STARTED:
    fabric_event = constants.FABRIC_EVENT_SCREEN_SHARE_START
  elif status == constants.SCREENSHARE_STATUS_STOPPED:
    fabric_event = constants.FABRIC_EVENT_SCREEN_SHARE_STOP
  else:
    return None
  return Action(
      ACTION_SEND_FABRIC_EVENT,
      role=resolve_role(event, constants.CONNECTION_ROLE_LOCAL_MAIN),
      fabric_event=fabric_event)


def match_channel_event(event: Event) -> Optional[Action]:
  # status is truthy when the channel is (re-)enabled
  enabled = bool(event.data.get('status'))
  if event.data.get('channel') == constants.CHANNEL_AUDIO:
    fabric_event = (constants.FABRIC_EVENT_AUDIO_UNMUTE if enabled
                    else constants.FABRIC_EVENT_AUDIO_MUTE)
  else:
    fabric_event = (constants.FABRIC_EVENT_VIDEO_RESUME if enabled
                    else constants.FABRIC_EVENT_VIDEO_PAUSE)
  return Action(
      ACTION_SEND_FABRIC_EVENT,
      role=resolve_role(event, constants.CONNECTION_ROLE_LOCAL_MAIN),
      fabric_event=fabric_event)


def match_plugin_handle_event(event: Event) -> Optional[Action]:
  role = constants.CONNECTION_ROLE_BY_HANDLE_FOR.get(event.data.get('for'))
  if event.data.get('status') != constants.PLUGIN_HANDLE_STATUS_DETACHED or role is None:
    return None
  return Action(ACTION_TERMINATE_FABRIC, role=role, fabric_event=constants.FABRIC_EVENT_TERMINATED)


def match_error_event(event: Event) -> Optional[Action]:
  status = event.data.get('status')
  if status == constants.WEBRTC_FUNCTION_CREATE_OFFER:
    # offers are created by the local publisher, answers by the subscriber
    default_role = constants.CONNECTION_ROLE_LOCAL_MAIN
  elif status == constants.WEBRTC_FUNCTION_CREATE_ANSWER:
    default_role = constants.CONNECTION_ROLE_REMOTE_SUBSCRIBER
  else:
    return None
  return Action(
      ACTION_REPORT_ERROR,
      role=resolve_role(event, default_role),
      function_name=status,
      error=event.data.get('error'))


EVENT_MATCHERS: Dict[str, Callable[[Event], Optional[Action]]] = {
    constants.EVENT_TYPE_USER: match_user_event,
    constants.EVENT_TYPE_SUBSCRIBER: match_subscriber_event,
    constants.EVENT_TYPE_STREAM: match_stream_event,
    constants.EVENT_TYPE_SCREENSHARE: match_screenshare_event,
    constants.EVENT_TYPE_CHANNEL: match_channel_event,
    constants.EVENT_TYPE_PLUGIN_HANDLE: match_plugin_handle_event,
    constants.EVENT_TYPE_ERROR: match_error_event,
}


def classify_event(event: Event) -> Optional[Action]:
  """Maps :event to the action it calls for.

  :param event: the conference lifecycle event
  :return: the Action, or None if the event type is unknown or no rule matches its data
  """
  matcher = EVENT_MATCHERS.get(event.type)
  if matcher is None:
    return None
  return matcher(event)


class EventDispatcher:
  def __init__(self, session_context: SessionContext, callstats_client: CallstatsClient,
               monitoring_config: MonitoringConfig) -> None:
    unmatched_types = set(constants.EVENT_TYPES) - set(EVENT_MATCHERS)
    if unmatched_types:
      raise ValueError(f'No matcher for event types {sorted(unmatched_types)}')

    self.session_context = session_context
    self.callstats_client = callstats_client
    self.monitoring_config = monitoring_config
    self.subscribed = False
    self.action_handlers = {
        ACTION_REGISTER_CONNECTION: self._register_connection,
        ACTION_SEND_FABRIC_EVENT: self._send_fabric_event,
        ACTION_TERMINATE_FABRIC: self._terminate_fabric,
        ACTION_REPORT_ERROR: self._report_error,
    }

  def subscribe(self, event_source: EventSource) -> None:
    """Subscribes handle_event to :event_source. Only the first call has an effect.

    :param event_source: the conference lifecycle event source
    :return: None
    """
    if self.subscribed:
      logger.warning('Event dispatcher is already subscribed to an event source')
      return
    event_source.subscribe(self.handle_event)
    self.subscribed = True
    logger.info('Event dispatcher subscribed to event source')

  def handle_event(self, event: Event) -> None:
    """Classifies, correlates and reports a single event. Never raises.

    :param event: the conference lifecycle event
    :return: None
    """
    try:
      self._dispatch(event)
    except CorrelationMiss as err:
      logger.info(f'Dropping {event.type} event: {err}')
      metrics.report_correlation_miss(err.role)
    except ConfigurationError:
      logger.exception(f'Cannot report {event.type} event, monitoring is misconfigured')
      metrics.report_configuration_error()
    except ValidationError as err:
      logger.warning(f'Dropping invalid event {event}: {err}')
      metrics.report_validation_error()
    except Exception:  # pylint: disable=broad-except
      logger.exception(f'Unexpected error while dispatching event {event}')
      metrics.report_dispatch_error()

  def _dispatch(self, event: Event) -> None:
    """Classifies :event and runs its action.

    Actions other than initialize only run once initialize has been invoked and has not failed.
    The backend does not need to have confirmed the session yet: its init callback may fire after
    the first registrations.

    :param event: the conference lifecycle event
    :return: None
    """
    logger.debug(f'Received event: {event}')
    metrics.report_event_received(event.type)

    action = classify_event(event)
    if action is None:
      logger.info(f'Unknown type of event: {event}')
      metrics.report_unknown_event(event.type)
      return
    if action.kind == ACTION_NONE:
      return
    if action.kind == ACTION_INITIALIZE:
      self._initialize(action)
      return

    if not self.session_context.initialized:
      logger.warning(f'Dropping {event.type} event, monitoring session is not initialized')
      metrics.report_not_initialized()
      return

    conference_id = event.conference_id
    if not conference_id:
      raise ValidationError(f'{event.type} event has no conference id')
    self.action_handlers[action.kind]((conference_id, action.role), action)

  def _initialize(self, action: Action) -> None:
    local_user_id = self.session_context.set_local_user(action.local_user_id)
    if self.session_context.initialized:
      logger.info(f'Monitoring session already initialized for {local_user_id}, ignoring join of '
                  f'{action.local_user_id}')
      return

    self.session_context.mark_initialization_pending()
    try:
      self.callstats_client.initialize(
          self.monitoring_config.app_id,
          self.monitoring_config.app_secret,
          local_user_id,
          init_callback=self.session_context.mark_initialization_result)
    except Exception:
      self.session_context.clear_initialization()
      raise

  def _lookup_connection(self, key: ConnectionKey) -> RegisteredConnection:
    connection = self.session_context.lookup_connection(key)
    if connection is None:
      raise CorrelationMiss(*key)
    return connection

  def _register_connection(self, key: ConnectionKey, action: Action) -> None:
    if self.session_context.lookup_connection(key) is not None:
      logger.info(f'Connection {key} is already registered, ignoring {action.handle}')
      return

    conference_id, _ = key
    remote_user_id = self.monitoring_config.remote_user_id
    # recorded before the backend call since the completion callback looks the connection up
    self.session_context.register_connection(key, action.handle, remote_user_id)
    try:
      self.callstats_client.register_connection(
          action.handle,
          remote_user_id,
          conference_id,
          callback=functools.partial(self._on_connection_registered, key, action.handle))
    except Exception:
      self.session_context.unregister_connection(key)
      raise

  def _on_connection_registered(self, key: ConnectionKey, handle: Any, error_code: str,
                                message: Optional[str] = None) -> None:
    connection = self.session_context.lookup_connection(key)
    if connection is None or connection.handle != handle:
      logger.info(f'Ignoring registration result {error_code} for stale connection {handle}')
      return
    self.session_context.mark_registration_result(connection, error_code, message)
    if error_code == constants.BACKEND_STATUS_SUCCESS:
      metrics.report_connection_registered(connection.role)

  def _send_fabric_event(self, key: ConnectionKey, action: Action) -> None:
    connection = self._lookup_connection(key)
    self.callstats_client.send_event(connection.handle, connection.conference_id,
                                     action.fabric_event)

  def _terminate_fabric(self, key: ConnectionKey, action: Action) -> None:
    connection = self._lookup_connection(key)
    try:
      self.callstats_client.send_event(connection.handle, connection.conference_id,
                                       action.fabric_event)
    finally:
      self.session_context.unregister_connection(key)

  def _report_error(self, key: ConnectionKey, action: Action) -> None:
    connection = self._lookup_connection(key)
    self.callstats_client.report_error(connection.handle, connection.conference_id,
                                       action.function_name, action.error)
