from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from callstats_bridge.lib.monitoring import constants

logger = logging.getLogger(__name__)

# (conference id, connection role)
ConnectionKey = Tuple[str, str]


@dataclass
# pylint: disable=unsubscriptable-object
class RegisteredConnection:
  """A connection (fabric) registered with the monitoring backend for one conference and role."""
  # Opaque peer connection handle passed to every backend call about this connection
  handle: Any
  conference_id: str
  # one of constants.CONNECTION_ROLES
  role: str
  remote_user_id: str
  # one of constants.REGISTRATION_STATUSES, updated by the backend completion callback
  status: str = constants.REGISTRATION_STATUS_PENDING
  error_message: Optional[str] = None

  @property
  def key(self) -> ConnectionKey:
    return self.conference_id, self.role


class SessionContext:
  """Per-session monitoring state: the local user, the backend initialization status and the
  connections registered so far.

  Only the dispatcher and the backend completion callbacks touch it, all on the event loop thread,
  so it takes no locks.
  """

  def __init__(self) -> None:
    self.local_user_id = None
    self.initialization_status = constants.INITIALIZATION_STATUS_NOT_INITIALIZED
    self.last_initialization_error = None
    self.connections: Dict[ConnectionKey, RegisteredConnection] = {}

  @property
  def initialized(self) -> bool:
    """True once initialize has been invoked, unless the backend reported it failed."""
    return self.initialization_status in [
        constants.INITIALIZATION_STATUS_PENDING,
        constants.INITIALIZATION_STATUS_INITIALIZED
    ]

  def set_local_user(self, user_id: str) -> str:
    """Sets the local user id if it is not set yet; the first id wins.

    :param user_id: id of the user that joined
    :return: the effective local user id
    """
    if self.local_user_id is None:
      logger.info(f'Local user id set to {user_id}')
      self.local_user_id = user_id
    elif self.local_user_id != user_id:
      logger.warning(f'Ignoring local user id {user_id}, already set to {self.local_user_id}')
    return self.local_user_id

  def mark_initialization_pending(self) -> None:
    self.initialization_status = constants.INITIALIZATION_STATUS_PENDING
    self.last_initialization_error = None

  def clear_initialization(self) -> None:
    """Reverts to not initialized after initialize was rejected before reaching the backend."""
    self.initialization_status = constants.INITIALIZATION_STATUS_NOT_INITIALIZED

  def mark_initialization_result(self, error_code: str, message: Optional[str] = None) -> None:
    """Records the outcome reported by the backend initialize callback.

    :param error_code: one of constants.BACKEND_STATUS_CODES
    :param message: the backend's descriptive message
    :return: None
    """
    if error_code == constants.BACKEND_STATUS_SUCCESS:
      self.initialization_status = constants.INITIALIZATION_STATUS_INITIALIZED
      self.last_initialization_error = None
    else:
      logger.error(f'Monitoring session initialization failed: {error_code} {message}')
      self.initialization_status = constants.INITIALIZATION_STATUS_FAILED
      self.last_initialization_error = (error_code, message)

  def register_connection(self, key: ConnectionKey, handle: Any,
                          remote_user_id: str) -> RegisteredConnection:
    """Inserts or replaces the connection registered for :key.

    :param key: (conference id, role)
    :param handle: opaque peer connection handle
    :param remote_user_id: the remote end reported for the connection
    :return: the registered connection
    """
    conference_id, role = key
    existing = self.connections.get(key)
    if existing is not None and existing.handle == handle:
      return existing
    connection = RegisteredConnection(handle, conference_id, role, remote_user_id)
    self.connections[key] = connection
    logger.debug(f'Registered connection {connection}')
    return connection

  def lookup_connection(self, key: ConnectionKey) -> Optional[RegisteredConnection]:
    return self.connections.get(key)

  def unregister_connection(self, key: ConnectionKey) -> Optional[RegisteredConnection]:
    connection = self.connections.pop(key, None)
    if connection is not None:
      logger.debug(f'Unregistered connection {connection}')
    return connection

  def mark_registration_result(self, connection: RegisteredConnection, error_code: str,
                               message: Optional[str] = None) -> None:
    """Records the outcome reported by the backend add connection callback.

    On failure the connection is dropped from the mapping, unless it was replaced or removed in the
    meantime, so later events for its (conference, role) miss correlation.

    :param connection: the connection the callback belongs to
    :param error_code: one of constants.BACKEND_STATUS_CODES
    :param message: the backend's descriptive message
    :return: None
    """
    if error_code == constants.BACKEND_STATUS_SUCCESS:
      connection.status = constants.REGISTRATION_STATUS_REGISTERED
      connection.error_message = None
      return

    connection.status = constants.REGISTRATION_STATUS_FAILED
    connection.error_message = message
    if self.connections.get(connection.key) is connection:
      logger.warning(f'Dropping connection {connection.key} after failed registration: '
                     f'{error_code} {message}')
      del self.connections[connection.key]
