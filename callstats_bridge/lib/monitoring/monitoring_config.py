from dataclasses import dataclass
from typing import Optional

from callstats_bridge.lib.exceptions import ConfigurationError

DEFAULT_APPLICATION_VERSION = '0.4.6'
# the bridge reports every connection as going to the media server rather than to a peer
DEFAULT_REMOTE_USER_ID = 'Janus'


@dataclass(frozen=True)
# pylint: disable=unsubscriptable-object
class MonitoringConfig:
  """Immutable monitoring configuration, built once at startup and handed to the adapter and the
  dispatcher.
  """
  # Application credentials issued by the monitoring backend
  app_id: Optional[str]
  app_secret: Optional[str]

  # Whether the bridge logs at debug level
  debug_enabled: bool = False

  # Reported to the backend on initialize
  application_version: str = DEFAULT_APPLICATION_VERSION

  # Whether the backend should skip installing its own page unload handler
  disable_before_unload_handler: bool = False

  # Remote user id reported for every registered connection
  remote_user_id: str = DEFAULT_REMOTE_USER_ID

  def validate(self) -> None:
    """Raises ConfigurationError when the app credentials are missing.

    :return: None
    """
    missing = [name for name, value in [('app_id', self.app_id), ('app_secret', self.app_secret)]
               if not value]
    if missing:
      raise ConfigurationError(f'Missing monitoring configuration: {", ".join(missing)}')

  def backend_config_params(self) -> dict:
    """The config object passed to the backend's initialize primitive."""
    return {
        'disableBeforeUnloadHandler': self.disable_before_unload_handler,
        'applicationVersion': self.application_version
    }
