"""Tests for sweep planning and application."""

import json

import pytest

from claudepm.errors import ConfigParseError
from claudepm.projects.claude_config import list_backups
from claudepm.projects.models import Failure, PathSource
from claudepm.sweep.planner import (
    ConfigOnlyItem,
    SweepPlan,
    SweepPlanner,
    SweepReason,
)


def _projects(app_config) -> dict:
    return json.loads(app_config.config_path.read_text(encoding="utf-8"))["projects"]


class TestPlan:
    def test_nothing_to_do(self, app_config, write_config, make_cache_dir):
        write_config({"D:\\Proj\\A": {"lastSessionId": "s1"}})
        make_cache_dir("D--Proj-A", {"s1": [{"cwd": "D:\\Proj\\A"}]})

        plan = SweepPlanner(app_config).plan()
        assert plan.is_empty
        assert not plan.removes_config_entries

    def test_orphan_not_in_configuration(self, app_config, write_config, make_cache_dir):
        write_config({})
        make_cache_dir("D--Proj-B", {"s1": ["{broken", {"type": "user"}]})

        plan = SweepPlanner(app_config).plan()

        assert len(plan.orphans) == 1
        orphan = plan.orphans[0]
        assert orphan.dir_name == "D--Proj-B"
        assert orphan.reason is SweepReason.NOT_IN_CONFIG
        assert orphan.reason.value == "not in configuration"
        assert orphan.path_source is PathSource.GUESSED
        assert not orphan.in_config

    def test_strict_skips_guessed_orphans(self, app_config, write_config, make_cache_dir):
        write_config({})
        make_cache_dir("D--Proj-B", {"s1": [{"type": "user"}]})
        make_cache_dir("D--Proj-C", {"s1": [{"cwd": "D:\\Proj\\C"}]})

        plan = SweepPlanner(app_config, strict=True).plan()

        assert [o.dir_name for o in plan.orphans] == ["D--Proj-C"]
        assert [s.dir_name for s in plan.skipped] == ["D--Proj-B"]

    def test_empty_and_logless_directories_are_invalid(self, app_config, write_config, make_cache_dir):
        write_config({})
        make_cache_dir("D--Empty")
        logless = make_cache_dir("D--Logless")
        (logless / "notes.txt").write_text("hi")

        plan = SweepPlanner(app_config).plan()

        reasons = {item.dir_name: item.reason for item in plan.invalid}
        assert reasons == {
            "D--Empty": SweepReason.EMPTY,
            "D--Logless": SweepReason.NO_SESSION_LOGS,
        }
        assert plan.orphans == []

    def test_config_only_entry(self, app_config, write_config):
        write_config({"D:\\Gone": {"lastSessionId": "x"}})

        plan = SweepPlanner(app_config).plan()

        assert [c.real_path for c in plan.config_only] == ["D:\\Gone"]
        assert not plan.config_only[0].cache_exists
        assert plan.removes_config_entries

    def test_cache_of_another_project_is_not_cleanable(self, app_config, write_config, make_cache_dir):
        write_config({"D:\\a-b": {}, "D:\\a\\b": {}})
        make_cache_dir("D--a-b", {"s1": [{"cwd": "D:\\a-b"}]})

        plan = SweepPlanner(app_config).plan()

        item = plan.config_only[0]
        assert item.real_path == "D:\\a\\b"
        assert item.cache_exists
        assert not item.cache_cleanable

    def test_posix_project_directory_is_never_a_cache(self, app_config, write_config, tmp_path):
        real = tmp_path / "work" / "myproj"
        real.mkdir(parents=True)
        write_config({str(real): {}})

        plan = SweepPlanner(app_config).plan()

        item = plan.config_only[0]
        assert item.cache_path is None
        assert not item.cache_exists
        assert not item.cache_cleanable

    def test_duplicate_of_configured_path_is_not_orphan(self, app_config, write_config, make_cache_dir):
        write_config({"/home/u/p": {}})
        make_cache_dir("a-dir", {"s1": [{"cwd": "/home/u/p"}]})
        make_cache_dir("b-dir", {"s2": [{"cwd": "/home/u/p"}]})

        plan = SweepPlanner(app_config).plan()
        assert plan.orphans == []

    def test_plan_does_not_mutate(self, app_config, write_config, make_cache_dir):
        write_config({"D:\\Gone": {}})
        make_cache_dir("D--Proj-B", {"s1": [{"type": "user"}]})
        before = app_config.config_path.read_bytes()

        SweepPlanner(app_config).plan()

        assert app_config.config_path.read_bytes() == before
        assert (app_config.cache_path / "D--Proj-B").exists()
        assert list_backups(app_config.backup_dir) == []


class TestApply:
    @pytest.mark.parametrize("with_files", [True, False])
    def test_posix_project_directory_survives(self, app_config, write_config, tmp_path, with_files):
        real = tmp_path / "work" / "myproj"
        real.mkdir(parents=True)
        if with_files:
            (real / "data.jsonl").write_text("{}")
            (real / "main.py").write_text("print()")
        write_config({str(real): {}})
        planner = SweepPlanner(app_config)

        report = planner.apply(planner.plan())

        assert report.removed_entries == [str(real)]
        assert report.deleted_files == 0
        assert report.deleted_dirs == []
        assert real.is_dir()
        if with_files:
            assert (real / "data.jsonl").exists()
            assert (real / "main.py").exists()

    def test_cleanable_item_outside_cache_root_is_left_alone(self, app_config, tmp_path):
        outside = tmp_path / "elsewhere"
        outside.mkdir()
        (outside / "s1.jsonl").write_text("{}")
        plan = SweepPlan(
            config_only=[
                ConfigOnlyItem(real_path="D:\\X", cache_path=outside, cache_exists=True, cache_cleanable=True)
            ]
        )
        app_config.config_path.write_text(json.dumps({"projects": {"D:\\X": {}}}))

        report = SweepPlanner(app_config).apply(plan)

        assert (outside / "s1.jsonl").exists()
        assert report.deleted_files == 0

    def test_removes_config_only_entry_with_backup(self, app_config, write_config, make_cache_dir):
        write_config({"D:\\Gone": {"lastSessionId": "x"}, "D:\\Proj\\A": {"lastSessionId": "s1"}}, theme="dark")
        make_cache_dir("D--Proj-A", {"s1": [{"cwd": "D:\\Proj\\A"}]})
        original = app_config.config_path.read_bytes()
        planner = SweepPlanner(app_config)

        report = planner.apply(planner.plan())

        assert report.removed_entries == ["D:\\Gone"]
        assert report.backup_path is not None
        assert report.backup_path.read_bytes() == original
        data = json.loads(app_config.config_path.read_text(encoding="utf-8"))
        assert data["theme"] == "dark"
        assert list(data["projects"]) == ["D:\\Proj\\A"]

    def test_deletes_orphans_without_touching_config(self, app_config, write_config, make_cache_dir):
        write_config({"D:\\Proj\\A": {}})
        make_cache_dir("D--Proj-A", {"s1": [{"cwd": "D:\\Proj\\A"}]})
        orphan = make_cache_dir("D--Proj-B", {"s1": [{"type": "user"}]})
        (orphan / "nested").mkdir()
        (orphan / "nested" / "file.bin").write_bytes(b"x")
        before = app_config.config_path.read_bytes()
        planner = SweepPlanner(app_config)

        report = planner.apply(planner.plan())

        assert report.deleted_dirs == ["D--Proj-B"]
        assert not orphan.exists()
        assert report.backup_path is None
        assert app_config.config_path.read_bytes() == before

    def test_invalid_claimed_directory_removes_entry(self, app_config, write_config, make_cache_dir):
        write_config({"D:\\Proj\\E": {}, "D:\\Proj\\A": {}})
        make_cache_dir("D--Proj-E")
        make_cache_dir("D--Proj-A", {"s1": [{"cwd": "D:\\Proj\\A"}]})
        planner = SweepPlanner(app_config)

        plan = planner.plan()
        assert plan.invalid[0].in_config
        report = planner.apply(plan)

        assert report.removed_entries == ["D:\\Proj\\E"]
        assert list(_projects(app_config)) == ["D:\\Proj\\A"]
        assert not (app_config.cache_path / "D--Proj-E").exists()

    def test_backup_written_before_deletion(self, app_config, write_config, make_cache_dir, monkeypatch):
        import claudepm.sweep.planner as planner_mod

        write_config({"D:\\Proj\\E": {}})
        make_cache_dir("D--Proj-E")
        real_remove_tree = planner_mod.remove_tree
        seen = []

        def checking_remove_tree(path, failures):
            seen.append(len(list_backups(app_config.backup_dir)))
            return real_remove_tree(path, failures)

        monkeypatch.setattr(planner_mod, "remove_tree", checking_remove_tree)
        planner = SweepPlanner(app_config)
        planner.apply(planner.plan())

        assert seen == [1]

    def test_failure_does_not_abort(self, app_config, write_config, make_cache_dir, monkeypatch):
        import claudepm.sweep.planner as planner_mod

        write_config({"D:\\Proj\\Bad": {}, "D:\\Gone": {}})
        make_cache_dir("D--Proj-Bad")
        make_cache_dir("D--Proj-Ok")
        real_remove_tree = planner_mod.remove_tree

        def flaky_remove_tree(path, failures):
            if path.name == "D--Proj-Bad":
                failures.append(Failure(target=str(path), error="Permission denied"))
                return False
            return real_remove_tree(path, failures)

        monkeypatch.setattr(planner_mod, "remove_tree", flaky_remove_tree)
        planner = SweepPlanner(app_config)
        report = planner.apply(planner.plan())

        assert report.deleted_dirs == ["D--Proj-Ok"]
        assert [f.target for f in report.failures] == [str(app_config.cache_path / "D--Proj-Bad")]
        # the entry of the directory that could not be deleted stays
        assert list(_projects(app_config)) == ["D:\\Proj\\Bad"]

    def test_vanished_directory_is_a_failure(self, app_config, write_config, make_cache_dir):
        write_config({})
        orphan = make_cache_dir("D--Proj-B", {"s1": [{"type": "user"}]})
        planner = SweepPlanner(app_config)
        plan = planner.plan()

        for child in orphan.iterdir():
            child.unlink()
        orphan.rmdir()
        report = planner.apply(plan)

        assert report.deleted_dirs == []
        assert len(report.failures) == 1

    def test_malformed_config_aborts_before_deleting(self, app_config, write_config, make_cache_dir):
        write_config({"D:\\Gone": {}})
        orphan = make_cache_dir("D--Proj-B", {"s1": [{"type": "user"}]})
        planner = SweepPlanner(app_config)
        plan = planner.plan()

        app_config.config_path.write_text("{ corrupted")
        with pytest.raises(ConfigParseError):
            planner.apply(plan)

        assert orphan.exists()
        assert list_backups(app_config.backup_dir) == []

    def test_config_only_cache_cleanup(self, app_config, write_config):
        write_config({"D:\\One": {}, "D:\\Two": {}})
        with_files = app_config.cache_path / "D--One"
        with_files.mkdir()
        (with_files / "s1.jsonl").write_text("{}")
        (with_files / "keep.txt").write_text("keep")
        empty = app_config.cache_path / "D--Two"
        empty.mkdir()

        plan = SweepPlan(
            config_only=[
                ConfigOnlyItem(real_path="D:\\One", cache_path=with_files, cache_exists=True, cache_cleanable=True),
                ConfigOnlyItem(real_path="D:\\Two", cache_path=empty, cache_exists=True, cache_cleanable=True),
            ]
        )
        report = SweepPlanner(app_config).apply(plan)

        assert report.deleted_files == 1
        assert report.deleted_dirs == ["D--Two"]
        assert (with_files / "keep.txt").exists()
        assert not (with_files / "s1.jsonl").exists()
        assert not empty.exists()
        assert _projects(app_config) == {}
