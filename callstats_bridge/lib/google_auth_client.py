from typing import Optional
import logging
import time

import google.auth
from google.auth.exceptions import DefaultCredentialsError

logger = logging.getLogger(__name__)

DEFAULT_CREDENTIALS_TRIES = 15


# pylint: disable=unsubscriptable-object
def get_gcp_project_id(tries: int = DEFAULT_CREDENTIALS_TRIES, retry_delay_secs: float = 0.2
                       ) -> Optional[str]:
  """Resolves the GCP project id the bridge runs in from the default credentials of the
  environment.

  Fetching the default credentials is attempted up to :tries times, with a blocking sleep between
  attempts; the metadata server may not answer during the first seconds of a workload's life.

  :param tries: max number of attempts
  :param retry_delay_secs: sleep duration between attempts
  :return: the GCP project id, or None if it cannot be inferred from the environment
  """
  for attempt in range(1, tries + 1):
    try:
      _, gcp_project_id = google.auth.default()
    except DefaultCredentialsError:
      if attempt == tries:
        raise
      logger.warning(f'Unable to fetch GCP credentials (attempt {attempt}/{tries}), retrying...')
      time.sleep(retry_delay_secs)
    else:
      return gcp_project_id
  return None
