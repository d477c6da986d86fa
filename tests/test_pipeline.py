import asyncio
from datetime import date
from pathlib import Path

from gantt_stream.core.config import EngineConfig
from gantt_stream.core.stream.pipeline import build_plan, build_plan_async, chunk_text


MILESTONE_FIRST = (
    "```mermaid\n"
    "gantt\n"
    "    section A\n"
    "        Scope:t1, 2025-01-01, 2d\n"
    "        Done: milestone, after t3\n"
    "        Build:t2, after t1, 2d\n"
    "        Test:t3, after t2, 1d\n"
    "```\n"
)


def _dates(plan):
    return {t.id: (t.start_date, t.end_date) for _, t in plan.iter_tasks()}


def test_chunk_text_splits_evenly():
    assert list(chunk_text("abcdefg", 3)) == ["abc", "def", "g"]
    assert list(chunk_text("", 3)) == []


def test_milestone_declared_before_its_task():
    outcome = build_plan([MILESTONE_FIRST])
    assert outcome.warnings == []
    assert outcome.dropped == []
    done = outcome.plan.find_task("done")[1]
    assert done is not None
    assert done.start_date == date(2025, 1, 6)
    assert outcome.plan.timeline.start_date == date(2025, 1, 1)
    assert outcome.plan.timeline.end_date == date(2025, 1, 6)


def test_fragment_size_does_not_change_the_plan():
    expected = build_plan([MILESTONE_FIRST]).plan
    for size in (1, 2, 5, 13, 64):
        outcome = build_plan(chunk_text(MILESTONE_FIRST, size))
        assert _dates(outcome.plan) == _dates(expected)
        assert outcome.plan.section_names() == ["A"]
        assert outcome.plan.timeline == expected.timeline


def test_missing_dependency_keeps_task_undated_with_one_warning():
    text = (
        "```\n"
        "gantt\n"
        "    section A\n"
        "        Scope:t1, 2025-01-01, 2d\n"
        "        Orphan:t2, after ghost, 2d\n"
        "```\n"
    )
    outcome = build_plan(chunk_text(text, 4), EngineConfig(max_iterations=3))
    assert [t.id for _, t in outcome.plan.iter_tasks()] == ["t1", "t2"]
    assert outcome.plan.find_task("t2")[1].is_pending
    assert [d.task.id for d in outcome.dropped] == ["t2"]
    assert [(w.code, w.message) for w in outcome.warnings] == [
        ("W_UNRESOLVED_DEPENDENCY", "t2 depends on unknown id(s): ghost"),
    ]
    assert outcome.warnings[0].path == "sections[0].tasks[1]"


CYCLE = "```mermaid\ngantt\nsection S\nA:a, after b, 2d\nB:b, after a, 2d\n```\n"


def test_cycle_keeps_both_tasks_in_declared_order():
    for size in (3, 8, len(CYCLE)):
        outcome = build_plan(chunk_text(CYCLE, size))
        assert outcome.plan.section_names() == ["S"]
        assert _dates(outcome.plan) == {"a": (None, None), "b": (None, None)}
        assert [t.id for _, t in outcome.plan.iter_tasks()] == ["a", "b"]
        assert sorted(d.task.id for d in outcome.dropped) == ["a", "b"]
        assert [(w.code, w.message) for w in outcome.warnings] == [
            ("W_DEPENDENCY_CYCLE", "dependency cycle detected: a -> b -> a"),
            ("W_DEPENDENCY_CYCLE", "dependency cycle detected: b -> a -> b"),
        ]


def test_example_stream_file():
    text = Path("examples/plan-stream.md").read_text(encoding="utf-8")
    outcome = build_plan(chunk_text(text, 7))

    assert outcome.warnings == []
    assert outcome.plan.section_names() == ["Design", "Build"]
    dates = _dates(outcome.plan)
    assert dates["req"] == (date(2025, 1, 1), date(2025, 1, 6))
    assert dates["digitalmodel"] == (date(2025, 1, 6), date(2025, 1, 16))
    assert dates["construct"] == (date(2025, 1, 16), date(2025, 1, 23))
    assert outcome.plan.find_task("model_complete")[1].start_date == date(2025, 1, 23)
    assert dates["review"] == (date(2025, 1, 23), date(2025, 1, 25))
    assert outcome.plan.timeline.end_date == date(2025, 1, 25)

    summary = outcome.summary
    assert [t.summary for t in summary.thinking] == [
        "Understanding the project",
        "Drafting the timeline",
        "Wrapping up",
    ]
    assert summary.sketch.total_tasks == 4
    assert summary.sketch.total_milestones == 2


def test_async_source_matches_sync():
    async def source():
        for chunk in chunk_text(MILESTONE_FIRST, 5):
            await asyncio.sleep(0)
            yield chunk

    outcome = asyncio.run(build_plan_async(source()))
    assert _dates(outcome.plan) == _dates(build_plan([MILESTONE_FIRST]).plan)
    assert outcome.warnings == []
