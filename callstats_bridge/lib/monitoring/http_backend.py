from __future__ import annotations
import asyncio
import base64
import hashlib
import hmac
import json
import logging
import urllib.parse
from typing import Any, Optional, Set

import httpx

from callstats_bridge.lib import wrappers
from callstats_bridge.lib.exceptions import BackendReportedFailure
from callstats_bridge.lib.monitoring import constants
from callstats_bridge.lib.monitoring.callstats_client import CompletionCallback, StatsCallback

logger = logging.getLogger(__name__)


# pylint: disable=unsubscriptable-object
class HttpMonitoringBackend:
  """Monitoring backend primitives implemented over the backend's REST API.

  Each primitive schedules its request as a background task on the running event loop and returns
  immediately. Request payloads are signed with the app secret (refer to
  create_request_payload_signature()).

  Endpoints, relative to :api_url:
    POST /apps/:app_id/sessions
    POST /apps/:app_id/conferences/:conference_id/fabrics
    POST /apps/:app_id/conferences/:conference_id/fabrics/:connection_id/errors
    POST /apps/:app_id/conferences/:conference_id/fabrics/:connection_id/events
  """

  def __init__(self, api_url: str, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
    """HTTP monitoring backend constructor.

    :param api_url: base URL of the monitoring REST API
    :param transport: optional httpx transport, e.g. an httpx.MockTransport
    """
    self.api_url = api_url.rstrip('/')
    self.transport = transport
    self.app_id = None
    self.app_secret_bytes = None
    self.user_id = None
    self.pending_tasks: Set[asyncio.Task] = set()

  def initialize(self, app_id: str, app_secret: str, user_id: str, on_init: CompletionCallback,
                 on_stats: StatsCallback, config: dict) -> asyncio.Task:
    # the REST API has no stats push channel, so on_stats is never called by this backend
    self.app_id = app_id
    self.app_secret_bytes = bytes(app_secret, constants.UTF_8)
    self.user_id = user_id
    request_body = {
        'user_id': user_id,
        'config': config
    }
    return wrappers.fire_and_forget(
        self.request(self._app_path('sessions'), request_body, on_complete=on_init),
        f'initialize_session_{user_id}',
        self.pending_tasks)

  def add_connection(self, handle: Any, remote_user_id: str, usage: str, conference_id: str,
                     on_complete: CompletionCallback) -> None:
    request_body = {
        'user_id': self.user_id,
        'connection_id': str(handle),
        'remote_user_id': remote_user_id,
        'usage': usage
    }
    wrappers.fire_and_forget(
        self.request(self._fabrics_path(conference_id), request_body, on_complete=on_complete),
        f'add_connection_{handle}',
        self.pending_tasks)

  def report_error(self, handle: Any, conference_id: str, function_code: str,
                   error: Any) -> None:
    request_body = {
        'user_id': self.user_id,
        'function': function_code,
        'error': error if isinstance(error, (str, dict)) or error is None else str(error)
    }
    wrappers.fire_and_forget(
        self.request(self._fabrics_path(conference_id, handle, 'errors'), request_body),
        f'report_error_{function_code}_{handle}',
        self.pending_tasks)

  def send_event(self, handle: Any, event_code: str, conference_id: str) -> None:
    request_body = {
        'user_id': self.user_id,
        'event': event_code
    }
    wrappers.fire_and_forget(
        self.request(self._fabrics_path(conference_id, handle, 'events'), request_body),
        f'send_event_{event_code}_{handle}',
        self.pending_tasks)

  async def drain(self) -> None:
    """Waits for every in-flight request to complete.

    :return: None
    """
    while self.pending_tasks:
      logger.info(f'Waiting for {len(self.pending_tasks)} in-flight monitoring requests')
      await asyncio.gather(*list(self.pending_tasks), return_exceptions=True)

  async def request(self, path: str, request_body: dict,
                    on_complete: Optional[CompletionCallback] = None) -> Optional[str]:
    """Sends a request and converts its outcome into a backend status code.

    :param path: API path relative to the base URL
    :param request_body: JSON request payload, signed before sending
    :param on_complete: if provided, called with the status code and a message
    :return: the status code (one of constants.BACKEND_STATUS_CODES)
    """
    try:
      response = await self.post(path, request_body)
      raise_for_backend_status(response)
    except (httpx.HTTPError, httpx.InvalidURL) as err:
      error_code, message = constants.BACKEND_STATUS_APP_CONNECTIVITY_ERROR, str(err)
    except BackendReportedFailure as err:
      error_code, message = err.error_code, err.message
    else:
      error_code, message = constants.BACKEND_STATUS_SUCCESS, None

    if error_code != constants.BACKEND_STATUS_SUCCESS:
      logger.error(f'Monitoring request {path} failed: {error_code} {message}')
    if on_complete is not None:
      on_complete(error_code, message)
    return error_code

  @wrappers.retry_coroutine(httpx.RequestError, tries=3, delay_secs=0.2, backoff=2)
  async def post(self, path: str, request_body: dict) -> httpx.Response:
    """Makes a signed HTTP POST request to :path.

    :param path: API path relative to the base URL
    :param request_body: JSON request payload
    :return: the HTTP response object
    """
    api_endpoint = f'{self.api_url}{path}'
    request_payload_signature_bytes = bytes(
        create_request_payload_signature(request_body, self.app_secret_bytes or b''),
        constants.UTF_8)
    headers = {
        constants.REQUEST_SIGNATURE_HEADER_NAME:
            base64.b64encode(request_payload_signature_bytes).decode(constants.UTF_8)
    }
    logger.debug(f'Sending request {constants.HTTP_POST} {api_endpoint} with request body: '
                 f'{json.dumps(request_body, indent=2)}')
    async with httpx.AsyncClient(transport=self.transport) as client:
      resp = await client.post(api_endpoint, headers=headers, json=request_body)
    logger.debug(f'Received response for {constants.HTTP_POST} {api_endpoint}: {resp}')
    return resp

  def _app_path(self, *segments: str) -> str:
    quoted_segments = [
        urllib.parse.quote(str(segment), safe='') for segment in ['apps', self.app_id, *segments]
    ]
    return '/' + '/'.join(quoted_segments)

  def _fabrics_path(self, conference_id: str, handle: Any = None,
                    resource: Optional[str] = None) -> str:
    segments = ['conferences', conference_id, 'fabrics']
    if handle is not None:
      segments.append(str(handle))
    if resource is not None:
      segments.append(resource)
    return self._app_path(*segments)


def raise_for_backend_status(response: httpx.Response) -> None:
  """Raises BackendReportedFailure for non-2xx responses: authError for 401/403, else httpError.

  :param response: the HTTP response object
  :return: None
  """
  if response.is_success:
    return
  if response.status_code in [401, 403]:
    error_code = constants.BACKEND_STATUS_AUTH_ERROR
  else:
    error_code = constants.BACKEND_STATUS_HTTP_ERROR
  raise BackendReportedFailure(error_code, f'{response.status_code} {response.text}')


def create_request_payload_signature(request_payload: dict, app_secret_bytes: bytes) -> str:
  """Signs the request payload with the app secret using SHA-256 and returns the hex signature.

  The payload is converted to JSON with sorted keys first; the backend must do the same to verify
  the signature.

  :param request_payload: full request payload dict
  :param app_secret_bytes: secret shared between the app and the monitoring backend
  :return: hex digest of the HMAC-SHA256 signature
  """
  request_payload_string = json.dumps(request_payload, sort_keys=True)
  payload_bytes = bytes(request_payload_string, constants.UTF_8)
  return hmac.new(app_secret_bytes, payload_bytes, hashlib.sha256).hexdigest()
