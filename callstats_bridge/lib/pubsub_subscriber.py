from __future__ import annotations
import logging
from typing import TYPE_CHECKING

from google.cloud import pubsub_v1

if TYPE_CHECKING:
  from google.pubsub_v1.types import pubsub

#  pylint: disable=wrong-import-position
from callstats_bridge.lib.monitoring import constants

logger = logging.getLogger(__name__)

# upper bound for a single blocking pull() call, so the caller can check for termination between
#  calls
PULL_TIMEOUT_SECS = 10


def create_subscriber(gcp_project_id: str, pubsub_subscription_id: str
                      ) -> (pubsub_v1.SubscriberClient, str):
  """Creates a Pub/Sub subscriber client and the fully-qualified name of the conference events
  subscription.

  :param gcp_project_id: GCP project id of the current environment
  :param pubsub_subscription_id: unqualified pubsub subscription name, e.g.
  'conference-events-subscription'
  :return: the subscriber client and fully-qualified subscription name
  """
  subscriber = pubsub_v1.SubscriberClient()
  # projects/{project_id}/subscriptions/{subscription_id}
  pubsub_subscription_path = subscriber.subscription_path(gcp_project_id, pubsub_subscription_id)
  return subscriber, pubsub_subscription_path


def pull(subscriber: pubsub_v1.SubscriberClient, pubsub_subscription_path: str,
         max_messages: int = 1, timeout_secs: float = PULL_TIMEOUT_SECS) -> pubsub.PullResponse:
  """Makes a single blocking pull() call on the provided subscription.

  At most :max_messages messages are returned, in publish order for an ordered subscription.

  :param subscriber: subscriber client object
  :param pubsub_subscription_path: fully-qualified subscription identifier
  :param max_messages: maximum number of messages to pull
  :param timeout_secs: timeout of the pull() RPC
  :return: a pull response API object containing the messages returned from the call
  """
  return subscriber.pull(
      subscription=pubsub_subscription_path,
      max_messages=max_messages,
      timeout=timeout_secs)


def acknowledge_pubsub_messages(subscriber: pubsub_v1.SubscriberClient,
                                pubsub_subscription_path: str, ack_ids: list[str],
                                ack_type: str = constants.PUB_SUB_ACK_TYPE_ACK) -> None:
  """Acknowledge message(s) corresponding to :ack_ids.

  PUB_SUB_ACK_TYPE_NACK sets the ack deadline of the message(s) to 0 seconds so they are
  redelivered.

  :param subscriber: subscriber client object
  :param pubsub_subscription_path: fully-qualified Pub/Sub subscription id
  :param ack_ids: ack ids for the message(s) to acknowledge
  :param ack_type: PUB_SUB_ACK_TYPE_ACK or PUB_SUB_ACK_TYPE_NACK as defined in constants.py
  :return: None
  """
  if ack_type == constants.PUB_SUB_ACK_TYPE_ACK:
    logger.debug(f'ACKing Pub/Sub messages with ack ids: {ack_ids}')
    subscriber.acknowledge(subscription=pubsub_subscription_path, ack_ids=ack_ids)
  elif ack_type == constants.PUB_SUB_ACK_TYPE_NACK:
    logger.debug(f'NACKing Pub/Sub messages with ack ids: {ack_ids}')
    subscriber.modify_ack_deadline(
        subscription=pubsub_subscription_path,
        ack_ids=ack_ids,
        ack_deadline_seconds=0)
  else:
    logger.error(f'Unknown acknowledgement type {ack_type} - skipping acknowledgement for ack '
                 f'ids: {ack_ids}')
