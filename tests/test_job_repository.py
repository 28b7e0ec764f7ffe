"""Tests for the MongoDB-backed job status store."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from pymongo.errors import DuplicateKeyError, ServerSelectionTimeoutError

from src.database.job_repository import JobStatusStore
from src.errors import PersistenceError, StatusTransitionRefused, ValidationError
from src.jobs.models import JobStatus
from src.render.models import Caption, CaptionStyle


@pytest.fixture
def collection() -> MagicMock:
    coll = MagicMock()
    coll.update_one.return_value.matched_count = 1
    return coll


@pytest.fixture
def job_store(collection) -> JobStatusStore:
    return JobStatusStore(collection)


class TestSetStatus:
    def test_guarded_update_sets_status_and_timestamp_only(self, job_store, collection):
        job_store.set_status("j1", JobStatus.PROCESSING)

        query, update = collection.update_one.call_args.args
        assert query == {"job_id": "j1", "status": {"$in": ["queued", "processing"]}}
        assert update["$set"] == {"status": "processing"}
        assert isinstance(update["$max"]["updated_at"], datetime)
        assert update["$max"]["updated_at"].tzinfo == timezone.utc
        assert collection.update_one.call_count == 1

    def test_completion_only_applies_from_processing(self, job_store, collection):
        job_store.set_status("j1", JobStatus.COMPLETED, output_url="https://signed")

        query, update = collection.update_one.call_args.args
        assert query["status"] == {"$in": ["processing"]}
        assert update["$set"] == {"status": "completed", "output_url": "https://signed"}

    def test_writes_error_on_failure(self, job_store, collection):
        job_store.set_status("j1", JobStatus.FAILED, error="ffmpeg crashed")

        query, update = collection.update_one.call_args.args
        assert query["status"] == {"$in": ["queued", "processing"]}
        assert update["$set"] == {"status": "failed", "error": "ffmpeg crashed"}

    def test_empty_values_never_clear_fields(self, job_store, collection):
        job_store.set_status("j1", JobStatus.FAILED, output_url="", error="")

        update = collection.update_one.call_args.args[1]
        assert update["$set"] == {"status": "failed"}
        assert "$unset" not in update

    def test_accepts_plain_status_strings(self, job_store, collection):
        job_store.set_status("j1", "processing")

        assert collection.update_one.call_args.args[1]["$set"]["status"] == "processing"

    @pytest.mark.parametrize("terminal", ["completed", "failed"])
    def test_terminal_record_is_never_changed(self, job_store, collection, terminal):
        collection.update_one.return_value.matched_count = 0
        collection.find_one.return_value = {"status": terminal}

        with pytest.raises(StatusTransitionRefused) as excinfo:
            job_store.set_status("j1", JobStatus.PROCESSING)

        assert excinfo.value.current == terminal
        assert collection.update_one.call_count == 1
        assert "upsert" not in collection.update_one.call_args.kwargs

    def test_failure_cannot_overwrite_completion(self, job_store, collection):
        collection.update_one.return_value.matched_count = 0
        collection.find_one.return_value = {"status": "completed"}

        with pytest.raises(StatusTransitionRefused):
            job_store.set_status("j1", JobStatus.FAILED, error="boom")

    def test_missing_record_is_created(self, job_store, collection):
        collection.update_one.return_value.matched_count = 0
        collection.find_one.return_value = None

        job_store.set_status("j1", JobStatus.PROCESSING)

        assert collection.update_one.call_count == 2
        query, update = collection.update_one.call_args.args
        assert query["job_id"] == "j1"
        assert "created_at" in update["$setOnInsert"]
        assert collection.update_one.call_args.kwargs == {"upsert": True}

    def test_record_created_concurrently_in_terminal_state(self, job_store, collection):
        collection.update_one.side_effect = [
            MagicMock(matched_count=0),
            DuplicateKeyError("dup"),
        ]
        collection.find_one.side_effect = [None, {"status": "failed"}]

        with pytest.raises(StatusTransitionRefused) as excinfo:
            job_store.set_status("j1", JobStatus.COMPLETED, output_url="https://signed")

        assert excinfo.value.current == "failed"

    def test_driver_error_raises_persistence_error(self, job_store, collection):
        collection.update_one.side_effect = ServerSelectionTimeoutError("no servers")

        with pytest.raises(PersistenceError, match="j1"):
            job_store.set_status("j1", JobStatus.PROCESSING)


class TestCreateJob:
    def test_inserts_queued_record(self, job_store, collection):
        job = job_store.create_job(
            "j1", "input/j1.mp4", [Caption(start=0, end=2, text="hi")], CaptionStyle.KARAOKE
        )

        document = collection.insert_one.call_args.args[0]
        assert document["status"] == "queued"
        assert document["style"] == "karaoke"
        assert document["captions"] == [{"start": 0.0, "end": 2.0, "text": "hi"}]
        assert document["output_url"] is None and document["error"] is None
        assert job["job_id"] == "j1"

    def test_duplicate_job_is_rejected(self, job_store, collection):
        collection.insert_one.side_effect = DuplicateKeyError("dup")

        with pytest.raises(ValidationError):
            job_store.create_job("j1", "k", [], CaptionStyle.BOTTOM)


class TestReads:
    def test_get_job(self, job_store, collection):
        collection.find_one.return_value = {"job_id": "j1", "status": "queued"}

        assert job_store.get_job("j1")["status"] == "queued"
        collection.find_one.assert_called_once_with({"job_id": "j1"}, {"_id": 0})

    def test_get_missing_job(self, job_store, collection):
        collection.find_one.return_value = None

        assert job_store.get_job("nope") is None

    def test_get_job_driver_error(self, job_store, collection):
        collection.find_one.side_effect = ServerSelectionTimeoutError("down")

        with pytest.raises(PersistenceError):
            job_store.get_job("j1")

    def test_find_stale_processing(self, job_store, collection):
        collection.find.return_value.sort.return_value = [{"job_id": "old"}]

        jobs = job_store.find_stale_processing(3600)

        query = collection.find.call_args.args[0]
        assert query["status"] == "processing"
        assert query["updated_at"]["$lt"] < datetime.now(timezone.utc)
        assert jobs == [{"job_id": "old"}]
