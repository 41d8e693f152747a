from click.testing import CliRunner

import cli.mandala_cmd as mandala_cmd


def _runner(monkeypatch, engine):
    monkeypatch.setattr(mandala_cmd, "get_engine", lambda: engine)
    return CliRunner()


def test_show_lists_majors_and_middles(monkeypatch, engine):
    engine.set_node_title("center", "Live well")
    result = _runner(monkeypatch, engine).invoke(mandala_cmd.mandala, ["show", "--major", "major_2"])
    assert result.exit_code == 0
    assert "Live well" in result.output
    assert "major_2_middle_8" in result.output
    assert "major_1 " not in result.output


def test_title_and_check(monkeypatch, engine):
    runner = _runner(monkeypatch, engine)

    result = runner.invoke(mandala_cmd.mandala, ["title", "major_1_middle_1", "Run"])
    assert result.exit_code == 0
    assert engine.get_node("major_1_middle_1").title == "Run"

    result = runner.invoke(mandala_cmd.mandala, ["check", "major_1_middle_1_minor_1"])
    assert result.exit_code == 0
    assert "major_1_middle_1 10%" in result.output
    assert "🎉" in result.output

    result = runner.invoke(mandala_cmd.mandala, ["uncheck", "major_1_middle_1_minor_1"])
    assert result.exit_code == 0
    assert engine.get_node("major_1_middle_1_minor_1").manual_check is False


def test_check_unknown_leaf_fails(monkeypatch, engine):
    result = _runner(monkeypatch, engine).invoke(mandala_cmd.mandala, ["check", "major_1"])
    assert result.exit_code == 1


def test_actual_requires_a_figure(monkeypatch, engine):
    runner = _runner(monkeypatch, engine)
    assert runner.invoke(mandala_cmd.mandala, ["actual", "1"]).exit_code == 1

    result = runner.invoke(mandala_cmd.mandala, ["actual", "1", "--revenue", "500"])
    assert result.exit_code == 0
    assert engine.ledger.actual_for_year(1).revenue_actual == 500


def test_snapshot_commands(monkeypatch, engine):
    runner = _runner(monkeypatch, engine)
    engine.set_node_title("major_1", "Health")

    assert runner.invoke(mandala_cmd.mandala, ["snapshot", "create"]).exit_code == 0
    listed = runner.invoke(mandala_cmd.mandala, ["snapshot", "list"])
    assert "snapshot_" in listed.output

    engine.set_node_title("major_1", "Wealth")
    assert runner.invoke(mandala_cmd.mandala, ["snapshot", "restore"]).exit_code == 0
    assert engine.get_node("major_1").title == "Health"
