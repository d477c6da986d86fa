from datetime import date

from gantt_stream.core.apply.apply_action import apply_all
from gantt_stream.core.edit.propagate import DateUpdate, edit_actions
from gantt_stream.core.edit.section_resize import calculate_section_resize, resize_section
from gantt_stream.core.lint.lint_plan import lint_plan
from gantt_stream.core.model import Plan, Section, Task
from gantt_stream.core.parse.parse_line import parse_line
from gantt_stream.core.resolve.dependency_dates import with_start_date


ANCHOR = date(2025, 1, 1)


def _task(tid, start, duration):
    return Task(id=tid, type="task", label=tid, start_date=start, duration=duration)


def _milestone(mid, at):
    return Task(id=mid, type="milestone", label=mid, start_date=at)


def test_double_size():
    tasks = [_task("t1", date(2025, 1, 1), 2), _task("t2", date(2025, 1, 3), 2)]
    result = calculate_section_resize(tasks, 2, ANCHOR)
    assert result.updates == [
        DateUpdate(id="t1", new_start_date=date(2025, 1, 1), new_duration=4),
        DateUpdate(id="t2", new_start_date=date(2025, 1, 5), new_duration=4),
    ]
    assert result.downstream_updates == []


def test_minimum_one_day_per_task():
    tasks = [_task("t1", date(2025, 1, 1), 2), _task("t2", date(2025, 1, 3), 2)]
    result = calculate_section_resize(tasks, 0.1, ANCHOR)
    assert result.updates == [
        DateUpdate(id="t1", new_start_date=date(2025, 1, 1), new_duration=1),
        DateUpdate(id="t2", new_start_date=date(2025, 1, 2), new_duration=1),
    ]
    assert calculate_section_resize(tasks, 0, ANCHOR).updates == result.updates


def test_milestones_only_move():
    tasks = [
        _task("t1", date(2025, 1, 1), 10),
        _task("t2", date(2025, 1, 11), 10),
        _milestone("milestone", date(2025, 1, 21)),
    ]
    result = calculate_section_resize(tasks, 0.5, ANCHOR)
    assert result.updates == [
        DateUpdate(id="t1", new_start_date=date(2025, 1, 1), new_duration=5),
        DateUpdate(id="t2", new_start_date=date(2025, 1, 6), new_duration=5),
        DateUpdate(id="milestone", new_start_date=date(2025, 1, 11)),
    ]


def test_half_days_round_up():
    tasks = [
        _task("digitalmodel", date(2024, 5, 19), 17),
        _task("construct25", date(2024, 6, 5), 18),
        _milestone("25_scale_model_complete", date(2024, 6, 23)),
        _milestone("proportion_model_completed", date(2024, 6, 23)),
    ]
    result = calculate_section_resize(tasks, 0.5, ANCHOR)
    assert result.updates == [
        DateUpdate(id="digitalmodel", new_start_date=date(2024, 5, 19), new_duration=9),
        DateUpdate(id="construct25", new_start_date=date(2024, 5, 28), new_duration=9),
        DateUpdate(id="25_scale_model_complete", new_start_date=date(2024, 6, 6)),
        DateUpdate(id="proportion_model_completed", new_start_date=date(2024, 6, 6)),
    ]


def test_floor_holds_for_any_ratio():
    tasks = [_task(f"t{i}", date(2025, 1, 1 + 3 * i), 3) for i in range(5)]
    for ratio in (0, -1, 0.01, 0.1, 0.3, 0.5, 1, 1.7, 3):
        updates = calculate_section_resize(tasks, ratio, ANCHOR).updates
        assert all(u.new_duration >= 1 for u in updates)
        start = min(u.new_start_date for u in updates)
        end = max((u.new_start_date - start).days + u.new_duration for u in updates)
        assert end >= len(tasks)


def test_empty_and_degenerate_inputs():
    assert calculate_section_resize([], 2, ANCHOR).updates == []
    assert calculate_section_resize([_task("t1", ANCHOR, 2)], 0, ANCHOR).updates == [
        DateUpdate(id="t1", new_start_date=ANCHOR, new_duration=1),
    ]
    same_day = [_milestone("a", ANCHOR), _milestone("b", ANCHOR)]
    assert calculate_section_resize(same_day, 3, ANCHOR).updates == [
        DateUpdate(id="a", new_start_date=ANCHOR),
        DateUpdate(id="b", new_start_date=ANCHOR),
    ]


def test_inputs_are_not_mutated():
    tasks = [_task("t1", date(2025, 1, 1), 2), _task("t2", date(2025, 1, 3), 2)]
    before = list(tasks)
    calculate_section_resize(tasks, 2, ANCHOR)
    assert tasks == before


def test_resize_section_pushes_dependents_in_other_sections():
    build = parse_line("Ship:t3, after t2, 1d", "B", {"t2": date(2025, 1, 5)}).task
    sections = [
        Section(name="A", tasks=[_task("t1", date(2025, 1, 1), 2), _task("t2", date(2025, 1, 3), 2)]),
        Section(name="B", tasks=[build]),
    ]
    result = resize_section(sections, "A", 2)
    assert [u.id for u in result.updates] == ["t1", "t2"]
    assert result.downstream_updates == [DateUpdate(id="t3", new_start_date=date(2025, 1, 9))]
    assert [u.id for u in result.all_updates] == ["t1", "t2", "t3"]


def test_resize_section_unknown_or_empty():
    assert resize_section([Section(name="A")], "A", 2).updates == []
    assert resize_section([Section(name="A")], "B", 2).updates == []


def _chain():
    a = with_start_date(Task(id="a", type="task", label="a", duration=1), date(2025, 1, 1))
    b = with_start_date(Task(id="b", type="task", label="b", duration=1, dependencies=["a"]), date(2025, 1, 2))
    c = with_start_date(Task(id="c", type="task", label="c", duration=1, dependencies=["b"]), date(2025, 1, 3))
    return [Section(name="S", tasks=[a, b, c])]


def test_rounding_keeps_chain_inside_section_ordered():
    sections = _chain()
    result = resize_section(sections, "S", 1.5)
    assert result.updates == [
        DateUpdate(id="a", new_start_date=date(2025, 1, 1), new_duration=2),
        DateUpdate(id="b", new_start_date=date(2025, 1, 3), new_duration=2),
        DateUpdate(id="c", new_start_date=date(2025, 1, 5), new_duration=2),
    ]
    assert result.downstream_updates == []
    plan = apply_all(Plan(sections=sections), edit_actions(result.all_updates)).plan
    assert lint_plan(plan) == []


def test_rounding_keeps_chain_ordered_without_sections():
    tasks = _chain()[0].tasks
    updates = calculate_section_resize(tasks, 1.5, ANCHOR).updates
    by_id = {u.id: u for u in updates}
    assert by_id["c"].new_start_date == date(2025, 1, 5)


def test_rescaled_section_never_breaks_internal_dependencies():
    for ratio in (0, 0.3, 0.5, 0.7, 1.5, 1.7, 2.5):
        sections = _chain()
        plan = apply_all(Plan(sections=sections), edit_actions(resize_section(sections, "S", ratio).all_updates)).plan
        assert lint_plan(plan) == [], ratio
