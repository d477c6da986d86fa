from datetime import date

from typer.testing import CliRunner

from gantt_stream.cli import app
from gantt_stream.core.io.plan_io import load_plan
from gantt_stream.core.lint.lint_plan import lint_plan


runner = CliRunner()


def _starts(path):
    return {t.id: t.start_date for _, t in load_plan(str(path)).iter_tasks()}


def test_cli_move_cascades(tmp_path):
    out = tmp_path / "moved.json"
    r = runner.invoke(app, ["move", "examples/plan.json", "t1", "2025-01-04", "--out", str(out)])
    assert r.exit_code == 0
    assert f"OK: wrote {out} (updates=4)" in r.stdout
    assert _starts(out) == {
        "t1": date(2025, 1, 4),
        "t2": date(2025, 1, 6),
        "t3": date(2025, 1, 8),
        "launch": date(2025, 1, 11),
    }
    assert lint_plan(load_plan(str(out))) == []


def test_cli_resize_task(tmp_path):
    out = tmp_path / "resized.yaml"
    r = runner.invoke(app, ["resize-task", "examples/plan.json", "t1", "5", "--out", str(out)])
    assert r.exit_code == 0
    plan = load_plan(str(out))
    assert plan.find_task("t1")[1].end_date == date(2025, 1, 6)
    assert plan.find_task("t3")[1].start_date == date(2025, 1, 8)
    assert lint_plan(plan) == []


def test_cli_move_section(tmp_path):
    out = tmp_path / "shifted.json"
    r = runner.invoke(app, ["move-section", "examples/plan.json", "Launch", "2025-01-10", "--out", str(out)])
    assert r.exit_code == 0
    assert "(updates=2)" in r.stdout
    starts = _starts(out)
    assert starts["t3"] == date(2025, 1, 10)
    assert starts["launch"] == date(2025, 1, 13)
    assert starts["t1"] == date(2025, 1, 1)


def test_cli_resize_section(tmp_path):
    out = tmp_path / "scaled.json"
    r = runner.invoke(app, ["resize-section", "examples/plan.json", "Design", "2", "--out", str(out)])
    assert r.exit_code == 0
    assert "(updates=4)" in r.stdout
    plan = load_plan(str(out))
    assert plan.find_task("t2")[1].start_date == date(2025, 1, 5)
    assert plan.find_task("t2")[1].duration == 4
    assert plan.find_task("t3")[1].start_date == date(2025, 1, 9)
    assert plan.find_task("launch")[1].start_date == date(2025, 1, 12)


def test_cli_edit_errors(tmp_path):
    out = str(tmp_path / "out.json")
    r = runner.invoke(app, ["move", "examples/plan.json", "ghost", "2025-01-04", "--out", out])
    assert r.exit_code == 2
    assert "E_UNKNOWN_TASK" in r.stderr

    r = runner.invoke(app, ["move", "examples/plan.json", "t1", "next week", "--out", out])
    assert r.exit_code == 2
    assert "E_INVALID_DATE" in r.stderr

    r = runner.invoke(app, ["move-section", "examples/plan.json", "Nope", "2025-01-04", "--out", out])
    assert r.exit_code == 2
    assert "E_UNKNOWN_SECTION" in r.stderr

    r = runner.invoke(app, ["resize-section", "examples/plan.json", "Design", "--out", out, "--", "-1"])
    assert r.exit_code == 2
    assert "E_RESIZE_RATIO" in r.stderr

    r = runner.invoke(app, ["move", "examples/nope.json", "t1", "2025-01-04", "--out", out])
    assert r.exit_code == 1
    assert "E_FILE_NOT_FOUND" in r.stderr


def test_cli_render():
    r = runner.invoke(app, ["render", "examples/plan.json", "--title", "Launch"])
    assert r.exit_code == 0
    lines = r.stdout.splitlines()
    assert lines[0] == "```mermaid"
    assert "    title Launch" in lines
    assert "        Build:t2, after t1, 2d" in lines
