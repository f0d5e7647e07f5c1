import pytest

from callstats_bridge.lib.exceptions import ConfigurationError, ValidationError


def test_initialize_passes_config_and_forwards_callback(callstats_client, backend):
  results = []
  handle = callstats_client.initialize('app-1', 'secret-1', 'alice',
                                       init_callback=lambda *args: results.append(args))
  backend.init_callbacks[0]('success', None)

  assert handle == 'backend-session'
  assert backend.calls == [(
      'initialize', 'app-1', 'secret-1', 'alice',
      {'disableBeforeUnloadHandler': False, 'applicationVersion': '0.4.6'})]
  assert results == [('success', None)]


@pytest.mark.parametrize('app_id,app_secret', [(None, 'secret-1'), ('app-1', ''), (None, None)])
def test_initialize_requires_credentials(callstats_client, backend, app_id, app_secret):
  with pytest.raises(ConfigurationError):
    callstats_client.initialize(app_id, app_secret, 'alice')
  assert backend.calls == []


def test_failed_initialize_is_counted(callstats_client, backend, statsd):
  callstats_client.initialize('app-1', 'secret-1', 'alice')
  backend.init_callbacks[0]('authError', 'bad secret')

  error_tags = [call.kwargs['tags'] for call in statsd.increment.call_args_list]
  assert any('error_code:authError' in tags for tags in error_tags)


def test_register_connection_uses_multiplex(callstats_client, backend):
  callstats_client.register_connection('pc-1', 'Janus', 'room-1')

  assert backend.calls == [('add_connection', 'pc-1', 'Janus', 'multiplex', 'room-1')]


@pytest.mark.parametrize('handle,remote_user_id,conference_id', [
    (None, 'Janus', 'room-1'),
    ('pc-1', None, 'room-1'),
    ('pc-1', 'Janus', None),
    ('', 'Janus', 'room-1'),
    ('pc-1', '', 'room-1'),
    ('pc-1', 'Janus', ''),
])
def test_register_connection_rejects_faulty_parameters(callstats_client, backend, handle,
                                                       remote_user_id, conference_id):
  with pytest.raises(ValidationError, match='Faulty Parameters'):
    callstats_client.register_connection(handle, remote_user_id, conference_id)
  assert backend.calls == []


def test_register_connection_forwards_callback(callstats_client, backend):
  results = []
  callstats_client.register_connection('pc-1', 'Janus', 'room-1',
                                       callback=lambda *args: results.append(args))
  backend.connection_callbacks[0]('httpError', '503')

  assert results == [('httpError', '503')]


def test_report_error(callstats_client, backend):
  callstats_client.report_error('pc-1', 'room-1', 'createOffer', 'sdp failure')

  assert backend.calls == [('report_error', 'pc-1', 'room-1', 'createOffer', 'sdp failure')]


def test_report_error_rejects_unknown_function(callstats_client, backend):
  with pytest.raises(ValidationError):
    callstats_client.report_error('pc-1', 'room-1', 'createPizza', 'err')
  assert backend.calls == []


def test_send_event(callstats_client, backend):
  callstats_client.send_event('pc-1', 'room-1', 'videoPause')

  assert backend.calls == [('send_event', 'pc-1', 'videoPause', 'room-1')]


def test_send_event_rejects_unknown_event(callstats_client, backend):
  with pytest.raises(ValidationError):
    callstats_client.send_event('pc-1', 'room-1', 'coffeeBreak')
  assert backend.calls == []


def test_stats_callback_reports_rtt_and_loss(callstats_client, backend, statsd):
  callstats_client.initialize('app-1', 'secret-1', 'alice')
  backend.stats_callbacks[0]({
      'streams': {
          '1111': {'reportType': 'outbound', 'rtt': 42},
          '2222': {'reportType': 'inbound', 'fractionLoss': 0.05},
          '3333': {'reportType': 'inbound'},
      }
  })

  gauges = [(call.args[0], call.args[1]) for call in statsd.gauge.call_args_list]
  assert gauges == [
      ('confmon.callstats_bridge.outbound_rtt', 42),
      ('confmon.callstats_bridge.inbound_fraction_loss', 0.05),
  ]
