import asyncio
import logging

from callstats_bridge.event_bridge import bridge_runner, config
from callstats_bridge.lib.monitoring.monitoring_config import MonitoringConfig


def test_missing_credentials_terminate_with_error(statsd):
  asyncio.run(bridge_runner.main(
      MonitoringConfig(app_id=None, app_secret=None),
      'conference-events-subscription',
      'https://monitoring.test/v1'))

  tags = statsd.increment.call_args.kwargs['tags']
  assert 'confmon.error_type:callstats_bridge.terminated_with_error' in tags


def test_monitoring_config_from_environment(monkeypatch):
  monkeypatch.setattr(config, 'CALLSTATS_APP_ID', 'app-1')
  monkeypatch.setattr(config, 'CALLSTATS_APP_SECRET', 'secret-1')
  monkeypatch.setattr(config, 'REMOTE_USER_ID', 'media-server')

  monitoring_config = config.monitoring_config()

  monitoring_config.validate()
  assert monitoring_config.remote_user_id == 'media-server'
  assert monitoring_config.backend_config_params() == {
      'disableBeforeUnloadHandler': config.DISABLE_BEFORE_UNLOAD_HANDLER,
      'applicationVersion': config.APPLICATION_VERSION
  }


def test_debug_enabled_forces_debug_log_level(monkeypatch):
  monkeypatch.setattr(config, 'LOG_LEVEL', 'warning')

  assert config.log_level(MonitoringConfig('app-1', 'secret-1', debug_enabled=True)) == \
      logging.DEBUG
  assert config.log_level(MonitoringConfig('app-1', 'secret-1')) == logging.WARNING


def test_monitoring_config_carries_debug_flag(monkeypatch):
  monkeypatch.setattr(config, 'CALLSTATS_DEBUG', True)

  assert config.monitoring_config().debug_enabled
