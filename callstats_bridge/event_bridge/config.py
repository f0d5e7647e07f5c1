"""This config file reads and exposes the environment variables of the callstats bridge, optionally
loaded from the env file named by APP_ENV_CONFIG_FILE.
"""

import logging
import os

from dotenv import load_dotenv

from callstats_bridge.lib.monitoring.monitoring_config import (
  DEFAULT_APPLICATION_VERSION, DEFAULT_REMOTE_USER_ID, MonitoringConfig)

APP_ENV_CONFIG_FILE = os.getenv('APP_ENV_CONFIG_FILE')

# load the env file
load_dotenv(dotenv_path=APP_ENV_CONFIG_FILE)


def _env_flag(name: str, default: str = 'False') -> bool:
  return os.getenv(name, default).strip().lower() in ['1', 'true', 'yes', 'on']


# credentials issued by the monitoring backend
CALLSTATS_APP_ID = os.getenv('CALLSTATS_APP_ID')
CALLSTATS_APP_SECRET = os.getenv('CALLSTATS_APP_SECRET')
# whether to log debug information
CALLSTATS_DEBUG = _env_flag('CALLSTATS_DEBUG')
CALLSTATS_API_URL = os.getenv('CALLSTATS_API_URL', 'https://api.callstats.io/v1')
APPLICATION_VERSION = os.getenv('APPLICATION_VERSION', DEFAULT_APPLICATION_VERSION)
DISABLE_BEFORE_UNLOAD_HANDLER = _env_flag('DISABLE_BEFORE_UNLOAD_HANDLER')
REMOTE_USER_ID = os.getenv('REMOTE_USER_ID', DEFAULT_REMOTE_USER_ID)
PUBSUB_SUBSCRIPTION_ID = os.getenv('PUBSUB_SUBSCRIPTION_ID', 'conference-events-subscription')
# bridge log level, overridden to DEBUG when the monitoring config enables debug
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')


def monitoring_config() -> MonitoringConfig:
  return MonitoringConfig(
      app_id=CALLSTATS_APP_ID,
      app_secret=CALLSTATS_APP_SECRET,
      debug_enabled=CALLSTATS_DEBUG,
      application_version=APPLICATION_VERSION,
      disable_before_unload_handler=DISABLE_BEFORE_UNLOAD_HANDLER,
      remote_user_id=REMOTE_USER_ID)


def log_level(config: MonitoringConfig) -> int:
  if config.debug_enabled:
    return logging.DEBUG
  return getattr(logging, LOG_LEVEL.upper())
