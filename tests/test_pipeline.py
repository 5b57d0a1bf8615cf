from types import SimpleNamespace

import pytest

from edutrack.crud import DbResult
from edutrack.pipeline import PipelineAborted, StepPipeline


def test_steps_record_ids():
    pipeline = StepPipeline("demo")

    row = pipeline.run("first", lambda: DbResult(SimpleNamespace(id=7), None))
    path = pipeline.run("second", lambda: DbResult("a/b.txt", None))

    assert row.id == 7
    assert path == "a/b.txt"
    assert pipeline.report.ok
    assert [(s.name, s.record_id) for s in pipeline.report.created()] == [("first", 7), ("second", "a/b.txt")]


def test_failure_stops_and_keeps_completed_steps():
    pipeline = StepPipeline("demo")
    pipeline.run("first", lambda: DbResult(SimpleNamespace(id=1), None))

    with pytest.raises(PipelineAborted) as exc_info:
        pipeline.run("second", lambda: DbResult(None, "constraint failed"))

    report = exc_info.value.report
    assert not report.ok
    assert report.failed_step == "second"
    assert report.error == "constraint failed"
    assert report.as_dict()["steps"] == [
        {"name": "first", "ok": True, "record_id": 1, "error": None},
        {"name": "second", "ok": False, "record_id": None, "error": "constraint failed"},
    ]

    with pytest.raises(PipelineAborted):
        pipeline.run("third", lambda: DbResult(SimpleNamespace(id=3), None))
    assert len(report.steps) == 2


def test_missing_row_counts_as_failure():
    pipeline = StepPipeline("demo")

    with pytest.raises(PipelineAborted):
        pipeline.run("update", lambda: DbResult(None, None))

    assert pipeline.report.error == "no row returned"
