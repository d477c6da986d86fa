from datetime import date

from gantt_stream.core.config import EngineConfig
from gantt_stream.core.stream.actions import (
    AddSection,
    ProcessDependencies,
    ResolveDependency,
    UpdateTimeline,
    UpsertTask,
)
from gantt_stream.core.stream.session import StreamSession


CHART = (
    "# Plan overview\n"
    "Some prose before the chart.\n"
    "```mermaid\n"
    "gantt\n"
    "    section A\n"
    "        Scope:t1, 2025-01-01, 2d\n"
    "        Build:t2, after t1, 2d\n"
    "        Done: milestone, after t3\n"
    "    section A\n"
    "        Test:t3, after t2, 1d\n"
    "```\n"
)


def _types(actions):
    return [a.type for a in actions]


def test_consume_emits_actions_in_line_order():
    session = StreamSession()
    result = session.consume(CHART)
    assert _types(result.actions) == [
        "ADD_SECTION",
        "UPDATE_TIMELINE",
        "ADD_TASK",
        "UPDATE_TIMELINE",
        "ADD_TASK",
        "RESOLVE_DEPENDENCY",
        "UPDATE_TIMELINE",
        "ADD_TASK",
        "PROCESS_DEPENDENCIES",
    ]
    assert result.summary == "Plan overview"

    t2 = result.actions[4]
    assert isinstance(t2, UpsertTask)
    assert t2.task.start_date == date(2025, 1, 3)
    assert t2.task.end_date == date(2025, 1, 5)

    deferred = result.actions[5]
    assert isinstance(deferred, ResolveDependency)
    assert deferred.task.id == "done"
    assert deferred.task.start_date is None

    last_timeline = result.actions[6]
    assert isinstance(last_timeline, UpdateTimeline)
    assert last_timeline.timeline.start_date == date(2025, 1, 1)
    assert last_timeline.timeline.end_date == date(2025, 1, 6)


def test_chunking_does_not_change_actions():
    whole = StreamSession().consume(CHART).actions
    for size in (1, 5, 13):
        session = StreamSession()
        actions = []
        for i in range(0, len(CHART), size):
            actions.extend(session.consume(CHART[i : i + size]).actions)
        actions.extend(session.finish().actions)
        assert actions == whole


def test_dictionary_updates_immediately_and_skips_deferred_items():
    session = StreamSession()
    session.consume(CHART)
    assert set(session.task_dictionary) == {"t1", "t2", "t3"}


def test_lines_outside_fence_are_not_chart_content():
    session = StreamSession()
    result = session.consume("section A\nScope:t1, 2025-01-01, 2d\n")
    assert result.actions == []


def test_second_block_starts_clean_but_keeps_summary():
    session = StreamSession()
    session.consume(CHART)
    result = session.consume("# Revised\n```\nsection A\nRedo:t9, 2025-03-01, 1d\n```\n")
    assert _types(result.actions) == ["ADD_SECTION", "UPDATE_TIMELINE", "ADD_TASK", "PROCESS_DEPENDENCIES"]
    assert result.actions[0] == AddSection(name="A")
    assert [t.summary for t in session.state.summary.thinking] == ["Plan overview", "Revised"]


def test_running_summary():
    session = StreamSession()
    session.consume(CHART)
    summary = session.state.summary
    assert summary.all_text == CHART
    assert "Scope:t1, 2025-01-01, 2d" in summary.chart_markdown
    assert "Some prose" not in summary.chart_markdown
    assert summary.sketch.total_tasks == 3
    assert summary.sketch.total_milestones == 1
    assert summary.sketch.start_date == date(2025, 1, 1)
    assert summary.sketch.end_date == date(2025, 1, 6)
    assert summary.sketch.duration == 5


def test_bare_mode_reads_every_line_and_finish_requests_sweep():
    session = StreamSession(EngineConfig(fenced=False))
    result = session.consume("gantt\nsection A\nScope:t1, 2025-01-01, 2d\nDone: milestone, after t1")
    assert _types(result.actions) == ["ADD_SECTION", "UPDATE_TIMELINE", "ADD_TASK"]
    assert session.partial_line == "Done: milestone, after t1"

    tail = session.finish()
    assert _types(tail.actions) == ["ADD_MILESTONE", "PROCESS_DEPENDENCIES"]
    assert tail.actions[0].milestone.start_date == date(2025, 1, 3)


def test_truncated_block_still_gets_a_sweep():
    session = StreamSession()
    session.consume("```\nsection A\nBuild:t2, after t1, 2d\n")
    tail = session.finish()
    assert tail.actions == [ProcessDependencies()]


def test_reset_discards_state():
    session = StreamSession()
    session.consume(CHART + "```\nsection B\nhalf")
    session.reset()
    assert session.partial_line == ""
    assert session.task_dictionary == {}
    assert session.timeline is None
    assert session.state.summary.thinking == []
    assert session.finish().actions == []
