from gantt_stream.core.errors import PlanLoadError, PlanValidationError, PlanWarning, sorted_errors


def test_str_includes_location():
    e = PlanValidationError(code="E_X", message="bad", file="chart.mmd", path="line:3")
    assert str(e) == "chart.mmd:line:3: E_X: bad"
    assert str(PlanWarning(code="W_Y", message="meh")) == "<plan>: W_Y: meh"
    assert str(PlanLoadError(code="E_Z", message="gone", file="p.json")) == "p.json: E_Z: gone"


def test_items_carry_severity_and_source():
    assert PlanWarning(code="W_UNKNOWN_TASK", message="m").to_item()["severity"] == "warning"
    assert PlanLoadError(code="E_FILE_NOT_FOUND", message="m").to_item()["source"] == "load"
    assert PlanValidationError(code="L_CYCLE_DETECTED", message="m").source == "lint"
    item = PlanValidationError(code="E_GANTT_LINE_FORMAT", message="m", path="line:1").to_item()
    assert item == {
        "code": "E_GANTT_LINE_FORMAT",
        "message": "m",
        "file": None,
        "path": "line:1",
        "severity": "error",
        "source": "validate",
    }


def test_sorted_by_line_number():
    errors = [PlanValidationError(code="E", message="m", path=f"line:{n}") for n in (10, 2, 9)]
    assert [e.path for e in sorted_errors(errors)] == ["line:2", "line:9", "line:10"]
