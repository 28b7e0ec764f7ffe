"""
SQS plumbing for render jobs.

``JobPublisher`` enqueues newly created jobs; ``SQSQueuePoller`` long-polls
the queue and feeds each received batch to the ``QueueConsumer``.
"""

import json
import logging
import threading
from typing import Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from configs.config import get_config
from src.errors import StorageError
from src.jobs.consumer import QueueConsumer
from src.jobs.models import RenderJobMessage

logger = logging.getLogger(__name__)
cfg = get_config()


def _sqs_client():
    return boto3.client("sqs", region_name=cfg.AWS_REGION)


class JobPublisher:
    """Sends render job messages to the job queue."""

    def __init__(self, queue_url: Optional[str] = None, sqs_client=None) -> None:
        self.queue_url = queue_url or cfg.QUEUE_URL
        if not self.queue_url:
            raise ValueError("Queue URL required. Set QUEUE_URL")
        self.sqs_client = sqs_client or _sqs_client()

    def publish(self, job: RenderJobMessage) -> str:
        """Enqueue ``job`` and return the SQS message id."""
        try:
            response = self.sqs_client.send_message(
                QueueUrl=self.queue_url,
                MessageBody=json.dumps(job.to_message()),
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Could not enqueue job {job.job_id}: {exc}") from exc
        logger.info("Job %s enqueued as message %s", job.job_id, response["MessageId"])
        return response["MessageId"]


class SQSQueuePoller:
    """Long-polls the job queue and processes one batch at a time."""

    def __init__(
        self,
        consumer: QueueConsumer,
        queue_url: Optional[str] = None,
        sqs_client=None,
        batch_size: int = cfg.QUEUE_BATCH_SIZE,
        wait_seconds: int = cfg.QUEUE_WAIT_SECONDS,
    ) -> None:
        self.consumer = consumer
        self.queue_url = queue_url or cfg.QUEUE_URL
        if not self.queue_url:
            raise ValueError("Queue URL required. Set QUEUE_URL")
        self.sqs_client = sqs_client or _sqs_client()
        self.batch_size = min(max(1, batch_size), 10)
        self.wait_seconds = wait_seconds
        self._stop = threading.Event()

    def stop(self) -> None:
        self._stop.set()

    def poll_once(self) -> int:
        """
        Receive one batch, process it, then delete every received message.

        Messages are deleted even when their jobs failed, so failed jobs
        are never re-rendered by redelivery. Returns the batch size.
        """
        response = self.sqs_client.receive_message(
            QueueUrl=self.queue_url,
            MaxNumberOfMessages=self.batch_size,
            WaitTimeSeconds=self.wait_seconds,
            VisibilityTimeout=cfg.QUEUE_VISIBILITY_TIMEOUT_SECONDS,
        )
        messages: List[Dict] = response.get("Messages", [])
        if not messages:
            return 0

        self.consumer.process_batch(m["Body"] for m in messages)
        self._delete(messages)
        return len(messages)

    def _delete(self, messages: List[Dict]) -> None:
        entries = [
            {"Id": str(i), "ReceiptHandle": m["ReceiptHandle"]}
            for i, m in enumerate(messages)
        ]
        result = self.sqs_client.delete_message_batch(
            QueueUrl=self.queue_url, Entries=entries
        )
        for failed in result.get("Failed", []):
            logger.warning(
                "Could not delete message %s: %s",
                failed.get("Id"), failed.get("Message"),
            )

    def run_forever(self) -> None:
        """Poll until ``stop()`` is called. Receive errors back off and retry."""
        logger.info("Polling %s (batch=%d)", self.queue_url, self.batch_size)
        while not self._stop.is_set():
            try:
                self.poll_once()
            except (BotoCoreError, ClientError) as exc:
                logger.error("Queue poll failed: %s", exc)
                self._stop.wait(5)
        logger.info("Queue poller stopped")
