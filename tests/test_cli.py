import asyncio
from pathlib import Path

from typer.testing import CliRunner

from craftdb.cli import app
from craftdb.orchestrate.run import open_session

runner = CliRunner()
SAMPLE = Path(__file__).resolve().parent.parent / "data" / "sample_recipes.json"


def test_register_then_already_known(tmp_path):
    db = str(tmp_path / "cli.sqlite3")
    first = runner.invoke(app, ["register", "plank x4", "wood", "--db", db])
    second = runner.invoke(app, ["register", "plank x4", "wood", "--db", db])
    assert first.exit_code == 0, first.output
    assert "registered" in first.output
    assert "already known" in second.output


def test_add_entity_and_init(tmp_path):
    db = str(tmp_path / "cli.sqlite3")
    assert runner.invoke(app, ["init", "--db", db]).exit_code == 0
    first = runner.invoke(app, ["add-entity", "wood", "--max-stack", "64", "--db", db])
    second = runner.invoke(app, ["add-entity", "wood", "--db", db])
    assert "Entity added." in first.output
    assert "Entity already exists." in second.output


def test_import_and_show(tmp_path):
    db = str(tmp_path / "cli.sqlite3")
    result = runner.invoke(app, ["import", str(SAMPLE), "--db", db])
    assert result.exit_code == 0, result.output
    assert "3 new" in result.output
    assert "1 already known" in result.output

    async def first_hash():
        async with open_session(path=db) as session:
            return (await session.registry.list_recipes("torch"))[0].hash

    digest = asyncio.run(first_hash())
    shown = runner.invoke(app, ["show", digest, "--db", db])
    assert shown.exit_code == 0
    assert "torch x4" in shown.output
    assert "coal x1" in shown.output


def test_bad_input_exits_nonzero(tmp_path):
    db = str(tmp_path / "cli.sqlite3")
    result = runner.invoke(app, ["register", "plank x0", "wood", "--db", db])
    assert result.exit_code == 1
    assert "Error" in result.output
    missing = runner.invoke(app, ["show", "f" * 64, "--db", db])
    assert missing.exit_code == 1
