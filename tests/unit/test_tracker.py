import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from nfe_pipeline.errors import BatchStateError, NotFound
from nfe_pipeline.schema.models import FiscalRecord, ProcessingOutcome
from nfe_pipeline.storage import MemoryBatchStore
from nfe_pipeline.tracker import BatchTracker

pytestmark = pytest.mark.unit


@pytest.fixture
def tracker():
    return BatchTracker(MemoryBatchStore())


def processed(index, numero="1"):
    return ProcessingOutcome(
        file_index=index,
        file_name=f"nota{index}.xml",
        status="processed",
        record=FiscalRecord(numero_nf=numero),
    )


def failed(index, message="XML mal formado"):
    return ProcessingOutcome(
        file_index=index,
        file_name=f"nota{index}.xml",
        status="error",
        error_message=message,
    )


def test_create_batch_starts_processing(tracker):
    batch = tracker.create_batch(total_files=3)

    assert batch.status == "processing"
    assert (batch.total_files, batch.processed_files, batch.error_files) == (3, 0, 0)
    assert tracker.get_batch(batch.id) == batch
    assert tracker.list_events(batch.id)[0].stage == "SUBMIT"


def test_counters_follow_outcomes_and_complete_on_last(tracker):
    batch = tracker.create_batch(total_files=3)

    after_first = tracker.record_outcome(batch.id, processed(0))
    after_second = tracker.record_outcome(batch.id, failed(1))
    after_third = tracker.record_outcome(batch.id, processed(2))

    assert (after_first.processed_files, after_first.error_files, after_first.status) == (1, 0, "processing")
    assert (after_second.processed_files, after_second.error_files, after_second.status) == (1, 1, "processing")
    assert (after_third.processed_files, after_third.error_files, after_third.status) == (2, 1, "completed")
    assert after_third.completed_at is not None


def test_outcomes_listed_in_file_order(tracker):
    batch = tracker.create_batch(total_files=3)
    tracker.record_outcome(batch.id, processed(2))
    tracker.record_outcome(batch.id, failed(0))
    tracker.record_outcome(batch.id, processed(1))

    outcomes = tracker.list_outcomes(batch.id)

    assert [o.file_index for o in outcomes] == [0, 1, 2]
    assert outcomes[0].status == "error"
    assert outcomes[0].numero_nf == ""
    assert outcomes[0].chave_nf == ""


def test_events_record_each_file_and_finalize(tracker):
    batch = tracker.create_batch(total_files=2)
    tracker.record_outcome(batch.id, processed(0))
    tracker.record_outcome(batch.id, failed(1, "quebrado"))

    events = tracker.list_events(batch.id)

    assert [e.stage for e in events] == ["SUBMIT", "EXTRACT", "EXTRACT", "FINALIZE"]
    assert events[2].status == "FAILURE"
    assert events[2].details == {"error": "quebrado"}
    assert events[3].details == {"processed_files": 1, "error_files": 1}


def test_same_file_cannot_be_recorded_twice(tracker):
    batch = tracker.create_batch(total_files=2)
    tracker.record_outcome(batch.id, processed(0))

    with pytest.raises(BatchStateError):
        tracker.record_outcome(batch.id, failed(0))

    current = tracker.get_batch(batch.id)
    assert (current.processed_files, current.error_files) == (1, 0)


@pytest.mark.parametrize("index", [-1, 2, 10])
def test_index_out_of_range_is_rejected(tracker, index):
    batch = tracker.create_batch(total_files=2)

    with pytest.raises(BatchStateError):
        tracker.record_outcome(batch.id, processed(index))


def test_completed_batch_rejects_more_outcomes(tracker):
    batch = tracker.create_batch(total_files=1)
    tracker.record_outcome(batch.id, processed(0))

    with pytest.raises(BatchStateError):
        tracker.record_outcome(batch.id, processed(0))


def test_finalize_requires_every_outcome(tracker):
    batch = tracker.create_batch(total_files=2)
    tracker.record_outcome(batch.id, processed(0))

    with pytest.raises(BatchStateError):
        tracker.finalize(batch.id)

    assert tracker.get_batch(batch.id).status == "processing"


def test_finalize_is_idempotent(tracker):
    batch = tracker.create_batch(total_files=1)
    completed = tracker.record_outcome(batch.id, processed(0))

    assert tracker.finalize(batch.id) == completed
    assert [e.stage for e in tracker.list_events(batch.id)].count("FINALIZE") == 1


def test_empty_batch_is_born_completed(tracker):
    batch = tracker.create_batch(total_files=0)

    assert batch.status == "completed"
    assert tracker.finalize(batch.id).status == "completed"


@pytest.mark.parametrize("operation", ["get_batch", "list_outcomes", "list_events", "finalize"])
def test_unknown_batch_raises_not_found(tracker, operation):
    with pytest.raises(NotFound):
        getattr(tracker, operation)("nao-existe")


def test_record_outcome_on_unknown_batch_raises_not_found(tracker):
    with pytest.raises(NotFound):
        tracker.record_outcome("nao-existe", processed(0))


def test_concurrent_writers_and_pollers_see_monotonic_counts(tracker):
    total = 60
    batch = tracker.create_batch(total_files=total)
    observed = []
    done = threading.Event()

    def poll():
        while not done.is_set():
            b = tracker.get_batch(batch.id)
            observed.append((b.attempted_files, b.status))

    poller = threading.Thread(target=poll)
    poller.start()
    try:
        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(
                lambda i: tracker.record_outcome(batch.id, processed(i) if i % 3 else failed(i)),
                range(total),
            ))
    finally:
        done.set()
        poller.join()

    final = tracker.get_batch(batch.id)
    assert final.processed_files == 40
    assert final.error_files == 20
    assert final.status == "completed"

    counts = [count for count, _ in observed]
    assert counts == sorted(counts)
    assert all(count <= total for count in counts)
    assert all(status == "completed" for count, status in observed if count == total)
