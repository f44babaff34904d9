from unitask.aggregation import summarize_progress


def test_empty():
    summary = summarize_progress([])
    assert summary.task_count == 0
    assert summary.actual_average == 0
    assert summary.planned_average == 0


def test_mixed_schema_generations():
    tasks = [
        {"progressV13": {"actual": 40, "planned": 100}},
        {"progress": {"actual": 20, "planned": 50}},
        {"progress": 30},
        {},
    ]
    summary = summarize_progress(tasks)
    assert summary.task_count == 4
    assert summary.actual_total == 90
    assert summary.planned_total == 150
    assert summary.actual_average == 22.5
    assert summary.planned_average == 37.5


def test_accepts_task_rows(make_task):
    rows = [make_task(progress=10), make_task(progress_v13={"actual": 30, "planned": 40})]
    summary = summarize_progress(rows)
    assert summary.actual_total == 40
    assert summary.planned_total == 40
