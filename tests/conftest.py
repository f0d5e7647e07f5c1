from unittest import mock

import pytest

from callstats_bridge.lib import metrics
from callstats_bridge.lib.monitoring.callstats_client import CallstatsClient
from callstats_bridge.lib.monitoring.event_dispatcher import EventDispatcher
from callstats_bridge.lib.monitoring.events import parse_event
from callstats_bridge.lib.monitoring.monitoring_config import MonitoringConfig
from callstats_bridge.lib.monitoring.session_context import SessionContext


class FakeBackend:
  """Records every primitive call; completion callbacks are kept so tests decide when they fire."""

  def __init__(self):
    self.calls = []
    self.init_callbacks = []
    self.stats_callbacks = []
    self.connection_callbacks = []

  def initialize(self, app_id, app_secret, user_id, on_init, on_stats, config):
    self.calls.append(('initialize', app_id, app_secret, user_id, config))
    self.init_callbacks.append(on_init)
    self.stats_callbacks.append(on_stats)
    return 'backend-session'

  def add_connection(self, handle, remote_user_id, usage, conference_id, on_complete):
    self.calls.append(('add_connection', handle, remote_user_id, usage, conference_id))
    self.connection_callbacks.append(on_complete)

  def report_error(self, handle, conference_id, function_code, error):
    self.calls.append(('report_error', handle, conference_id, function_code, error))

  def send_event(self, handle, event_code, conference_id):
    self.calls.append(('send_event', handle, event_code, conference_id))

  def calls_named(self, name):
    return [call for call in self.calls if call[0] == name]


@pytest.fixture(autouse=True)
def statsd(monkeypatch):
  fake_statsd = mock.MagicMock()
  monkeypatch.setattr(metrics, 'statsd', fake_statsd)
  return fake_statsd


@pytest.fixture
def monitoring_config():
  return MonitoringConfig(app_id='app-1', app_secret='secret-1')


@pytest.fixture
def backend():
  return FakeBackend()


@pytest.fixture
def callstats_client(backend, monitoring_config):
  return CallstatsClient(backend, monitoring_config)


@pytest.fixture
def session_context():
  return SessionContext()


@pytest.fixture
def dispatcher(session_context, callstats_client, monitoring_config):
  return EventDispatcher(session_context, callstats_client, monitoring_config)


@pytest.fixture
def make_event():
  """Builds an Event the way the event source would decode it."""
  def _make_event(event_type, room='room-1', username=None, handle_for=None, **data):
    # 'for' is a keyword, so it is passed as handle_for
    if handle_for is not None:
      data['for'] = handle_for
    payload = {'type': event_type, 'data': data}
    if room is not None:
      payload['room'] = {'description': room}
    if username is not None:
      payload['user'] = {'username': username}
    return parse_event(payload)
  return _make_event


@pytest.fixture
def joined(dispatcher, make_event):
  """Dispatches a joining event for alice so the monitoring session is initialized."""
  dispatcher.handle_event(make_event('user', username='alice', status='joining'))
  return dispatcher
