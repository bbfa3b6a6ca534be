import datetime as dt

import pytest

from store_timeline.anchors import resolve_anchors
from store_timeline.catalog import default_catalog
from store_timeline.plan_records import dump_plan, from_records, load_plan, to_records
from store_timeline.scheduling import TimelineValidationError, generate_timeline, reschedule_on_task_edit
from store_timeline.timeline_models import AnchorName


def _plan():
    anchors = resolve_anchors({AnchorName.OPEN_DATE: dt.date(2025, 6, 1)})
    return anchors, generate_timeline(anchors, default_catalog())


def test_records_use_plain_values():
    _, tasks = _plan()

    record = next(r for r in to_records(tasks) if r["title"] == "Grand Open")

    assert record["start_date"] == "2025-06-01"
    assert record["priority"] == "HIGH"
    assert record["anchor"] == "OPEN_DATE"
    assert record["source_type"] == "TEMPLATE"
    assert record["milestone"] is True


def test_plan_file_restores_anchors_and_detached_tasks(tmp_path):
    anchors, tasks = _plan()
    tasks = reschedule_on_task_edit(tasks, tasks[0].task_id, dt.date(2024, 11, 1))
    path = tmp_path / "plan.yaml"

    dump_plan(tasks, str(path), anchors=anchors)
    loaded_anchors, loaded_tasks = load_plan(str(path))

    assert loaded_anchors == dict(anchors)
    assert loaded_tasks == tasks
    assert loaded_tasks[0].anchor is None


def test_record_with_due_before_start_is_rejected():
    record = to_records(_plan()[1])[0]
    record["due_date"] = "2000-01-01"

    with pytest.raises(TimelineValidationError) as excinfo:
        from_records([record])

    assert "tasks[0]" in str(excinfo.value)


def test_record_with_unknown_field_is_rejected():
    record = to_records(_plan()[1])[0]
    record["assignee"] = "someone"

    with pytest.raises(TimelineValidationError):
        from_records([record])


def test_duplicate_record_ids_are_rejected():
    records = to_records(_plan()[1])
    records[1]["id"] = records[0]["id"]

    with pytest.raises(TimelineValidationError) as excinfo:
        from_records(records)

    assert "tasks[1].id" in str(excinfo.value)


@pytest.mark.parametrize(
    "field, value, message",
    [
        ("milestone", "false", "tasks[0].milestone: expected boolean"),
        ("title", None, "tasks[0].title: expected non-empty string"),
        ("role_responsible", 7, "tasks[0].role_responsible: expected string"),
        ("order", "1", "tasks[0].order: expected integer"),
        ("id", 12, "tasks[0].id: expected non-empty string"),
    ],
)
def test_record_fields_are_checked_not_coerced(field, value, message):
    record = to_records(_plan()[1])[0]
    record[field] = value

    with pytest.raises(TimelineValidationError) as excinfo:
        from_records([record])

    assert message in str(excinfo.value)
