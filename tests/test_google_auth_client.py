import google.auth
import pytest
from google.auth.exceptions import DefaultCredentialsError

from callstats_bridge.lib import google_auth_client


def fake_default(failures, project_id='project-1'):
  attempts = []

  def default():
    attempts.append(1)
    if len(attempts) <= failures:
      raise DefaultCredentialsError('metadata server not ready')
    return object(), project_id
  return default, attempts


def test_get_gcp_project_id_retries_until_credentials_are_available(monkeypatch):
  default, attempts = fake_default(failures=2)
  monkeypatch.setattr(google.auth, 'default', default)

  assert google_auth_client.get_gcp_project_id(tries=3, retry_delay_secs=0) == 'project-1'
  assert len(attempts) == 3


def test_get_gcp_project_id_raises_after_last_attempt(monkeypatch):
  default, attempts = fake_default(failures=5)
  monkeypatch.setattr(google.auth, 'default', default)

  with pytest.raises(DefaultCredentialsError):
    google_auth_client.get_gcp_project_id(tries=3, retry_delay_secs=0)
  assert len(attempts) == 3
