"""Tests for SQS publishing and polling."""

import json
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from src.errors import StorageError
from src.jobs.consumer import QueueConsumer
from src.jobs.models import decode_message
from src.jobs.queue import JobPublisher, SQSQueuePoller

QUEUE_URL = "https://sqs.us-east-1.amazonaws.com/123/render-jobs"


@pytest.fixture
def sqs() -> MagicMock:
    client = MagicMock()
    client.send_message.return_value = {"MessageId": "m-1"}
    client.delete_message_batch.return_value = {"Successful": []}
    return client


def test_publish_sends_wire_format(sqs, message_body):
    job = decode_message(message_body("j1"))

    message_id = JobPublisher(QUEUE_URL, sqs).publish(job)

    assert message_id == "m-1"
    kwargs = sqs.send_message.call_args.kwargs
    assert kwargs["QueueUrl"] == QUEUE_URL
    assert json.loads(kwargs["MessageBody"])["jobId"] == "j1"


def test_publish_failure_raises_storage_error(sqs, message_body):
    sqs.send_message.side_effect = ClientError(
        {"Error": {"Code": "AWS.SimpleQueueService.NonExistentQueue", "Message": "gone"}},
        "SendMessage",
    )

    with pytest.raises(StorageError, match="j1"):
        JobPublisher(QUEUE_URL, sqs).publish(decode_message(message_body("j1")))


def test_poll_processes_and_deletes_whole_batch(sqs, orchestrator, store, message_body):
    sqs.receive_message.return_value = {
        "Messages": [
            {"Body": message_body("a1"), "ReceiptHandle": "r-a1"},
            {"Body": "{broken", "ReceiptHandle": "r-bad"},
        ]
    }
    poller = SQSQueuePoller(QueueConsumer(orchestrator), QUEUE_URL, sqs, batch_size=25)

    assert poller.poll_once() == 2

    assert sqs.receive_message.call_args.kwargs["MaxNumberOfMessages"] == 10
    assert store.jobs["a1"]["status"] == "completed"
    entries = sqs.delete_message_batch.call_args.kwargs["Entries"]
    assert [e["ReceiptHandle"] for e in entries] == ["r-a1", "r-bad"]


def test_poll_empty_queue(sqs, orchestrator):
    sqs.receive_message.return_value = {}
    poller = SQSQueuePoller(QueueConsumer(orchestrator), QUEUE_URL, sqs)

    assert poller.poll_once() == 0
    sqs.delete_message_batch.assert_not_called()


def test_queue_url_required(sqs, orchestrator, monkeypatch):
    from src.jobs import queue

    monkeypatch.setattr(queue.cfg, "QUEUE_URL", "")

    with pytest.raises(ValueError):
        JobPublisher(sqs_client=sqs)
