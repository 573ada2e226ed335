"""Tests for the command-line interface."""

import json
import logging

import pytest

from ..cli import build_parser, main
from ..repositories import SQLiteAffairRepository
from .conftest import make_candidate


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    """Run from an empty directory and restore logging afterwards."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    monkeypatch.delenv("POLIGRAPH_DB_PATH", raising=False)
    monkeypatch.delenv("POLIGRAPH_DRY_RUN", raising=False)
    monkeypatch.delenv("POLIGRAPH_VERBOSE", raising=False)
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def db(tmp_path):
    return str(tmp_path / "affairs.db")


class TestParser:
    def test_phase_flags_are_exclusive(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["discover", "--structured-only", "--text-only"])

    def test_discover_options(self):
        args = build_parser().parse_args(
            ["discover", "--limit", "5", "--politician", "dupont", "--dry-run"]
        )
        assert args.limit == 5
        assert args.politician == "dupont"
        assert args.dry_run


class TestCommands:
    def test_no_command(self, capsys):
        assert main([]) == 1

    def test_add_subject_and_stats(self, db, capsys):
        assert main(["add-subject", "p-1", "Jean Dupont", "--qid", "Q42", "--db", db]) == 0
        assert "Jean Dupont (p-1)" in capsys.readouterr().out

        assert main(["stats", "--db", db]) == 0
        out = capsys.readouterr().out
        assert "Subjects: 1" in out
        assert "Affairs: 0" in out

        [subject] = SQLiteAffairRepository(db).list_subjects()
        assert subject.external_id == "Q42"

    def test_duplicates_prints_json(self, db, capsys):
        repo = SQLiteAffairRepository(db)
        repo.create_affair(make_candidate(), "a")
        repo.create_affair(make_candidate(), "b")

        assert main(["duplicates", "p-1", "--db", db]) == 0

        data = json.loads(capsys.readouterr().out)
        assert data["total"] == 2
        assert data["groups"][0]["score"] == 80

    def test_discover_without_subjects(self, db, tmp_path, capsys):
        output = tmp_path / "run.json"

        code = main(["discover", "--structured-only", "--db", db, "-o", str(output)])

        assert code == 0
        assert "0 politician(s) selected" in capsys.readouterr().out
        summary = json.loads(output.read_text(encoding="utf-8"))
        assert summary["affairs_created"] == 0
        assert summary["dry_run"] is False

    def test_discover_dry_run(self, db, capsys):
        main(["add-subject", "p-9", "Sans Identifiant", "--db", db])

        code = main(["discover", "--structured-only", "--dry-run", "--db", db])

        assert code == 0
        out = capsys.readouterr().out
        assert "DRY RUN" in out
        assert "Politicians processed: 1" in out

    def test_discover_requires_api_key(self, db, capsys):
        assert main(["discover", "--db", db]) == 1
        assert "API key" in capsys.readouterr().out

    def test_init_config(self, tmp_path, capsys):
        target = tmp_path / "config.json"

        assert main(["init-config", str(target)]) == 0

        assert json.loads(target.read_text(encoding="utf-8"))["ai"]["api_key"] == (
            "YOUR_ANTHROPIC_API_KEY"
        )

    def test_discover_with_config_file(self, db, tmp_path, capsys):
        config = tmp_path / "config.json"
        config.write_text(json.dumps({"storage": {"db_path": db}}), encoding="utf-8")

        assert main(["discover", "--structured-only", "-c", str(config)]) == 0
        assert SQLiteAffairRepository(db).get_stats()["affairs"] == 0

    def test_verbose_from_environment(self, db, monkeypatch):
        monkeypatch.setenv("POLIGRAPH_VERBOSE", "1")

        assert main(["discover", "--structured-only", "--db", db]) == 0

        assert logging.getLogger().level == logging.DEBUG

    def test_info_level_by_default(self, db):
        assert main(["discover", "--structured-only", "--db", db]) == 0
        assert logging.getLogger().level == logging.INFO


class TestReviewCommands:
    def test_merge(self, db, capsys):
        repo = SQLiteAffairRepository(db)
        keep = repo.create_affair(make_candidate(), "a")
        remove = repo.create_affair(make_candidate(ecli="E1"), "b")

        assert main(["merge", keep.id, remove.id, "--db", db]) == 0

        out = capsys.readouterr().out
        assert f"Merged {remove.id} into {keep.id}" in out
        assert "Identifiers copied: ecli" in out
        assert SQLiteAffairRepository(db).get_affair(keep.id).ecli == "E1"

    def test_merge_unknown_affair(self, db, capsys):
        assert main(["merge", "nope", "missing", "--db", db]) == 1
        assert "Affair not found: nope" in capsys.readouterr().out

    def test_dismiss(self, db, capsys):
        repo = SQLiteAffairRepository(db)
        first = repo.create_affair(make_candidate(), "a")
        second = repo.create_affair(make_candidate(), "b")

        assert main(["dismiss", first.id, second.id, "--db", db]) == 0

        assert len(SQLiteAffairRepository(db).dismissed_pairs()) == 1
        capsys.readouterr()
        main(["duplicates", "p-1", "--db", db])
        assert json.loads(capsys.readouterr().out)["groups"] == []

    def test_reconcile_lists_and_auto_merges(self, db, capsys):
        repo = SQLiteAffairRepository(db)
        repo.create_affair(make_candidate(ecli="E1"), "a")
        repo.create_affair(make_candidate(subject_id="p-2"), "b")
        repo.create_affair(make_candidate(subject_id="p-2"), "c")

        assert main(["reconcile", "--auto-merge", "--dry-run", "--db", db]) == 0
        out = capsys.readouterr().out
        assert "1 potential duplicate(s)" in out
        assert "DRY RUN" in out
        assert "Merged: 1" in out
        assert SQLiteAffairRepository(db).get_stats()["affairs"] == 3

        assert main(["reconcile", "--auto-merge", "--db", db]) == 0
        assert SQLiteAffairRepository(db).get_stats()["affairs"] == 2

    def test_reconcile_stats(self, db, capsys):
        repo = SQLiteAffairRepository(db)
        repo.create_affair(make_candidate(), "a")
        repo.create_affair(make_candidate(), "b")

        assert main(["reconcile", "--stats", "--db", db]) == 0

        out = capsys.readouterr().out
        assert "Unverified affairs: 2" in out
        assert "Potential duplicates: 1" in out
        assert "HIGH: 1" in out
