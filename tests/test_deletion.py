"""Tests for node_modules deletion."""

import errno
import json
import os
import subprocess
import sys
from unittest.mock import patch

import pytest

from nmclean.deletion import (
    PartialRemovalError,
    classify_error,
    delete_node_modules,
    delete_selected_node_modules,
    generate_deletion_preview,
    generate_json_report,
    get_removal_strategies,
    make_writable_recursive,
    remove_after_chmod,
    remove_deleted_entries,
    remove_tree,
    remove_with_native_command,
    rename_and_remove,
    run_removal_strategies,
)
from nmclean.models import DeleteOptions, DeletionErrorKind, DeletionResult

MB = 1024 * 1024


@pytest.fixture
def project_entry(tmp_path, make_project, make_entry):
    """Entry backed by a real node_modules on disk."""

    def _make(name: str, size_bytes: int = 10 * MB, selected: bool = True):
        nm = make_project(tmp_path, name, {"react": 10, "lodash": 20})
        return make_entry(str(nm), size_bytes, selected=selected, project_name=name)

    return _make


class TestDeleteSelected:
    def test_deletes_selected_only(self, project_entry):
        keep = project_entry("keep", selected=False)
        drop = project_entry("drop")

        result = delete_selected_node_modules([keep, drop], DeleteOptions())

        assert result.total_attempted == 1
        assert result.successful == 1
        assert result.bytes_freed == 10 * MB
        assert os.path.isdir(keep.path)
        assert not os.path.exists(drop.path)
        # project directory itself stays
        assert os.path.isdir(os.path.dirname(drop.path))

    def test_dry_run_touches_nothing(self, project_entry):
        entries = [project_entry("a", 100 * MB), project_entry("b", 200 * MB)]

        dry = delete_selected_node_modules(entries, DeleteOptions(dry_run=True))

        assert dry.successful == 2
        assert dry.bytes_freed == 300 * MB
        assert all(os.path.isdir(e.path) for e in entries)

        real = delete_selected_node_modules(entries, DeleteOptions())
        assert real.bytes_freed == dry.bytes_freed

    def test_failure_does_not_abort_batch(self, project_entry):
        first = project_entry("first")
        gone = project_entry("gone")
        last = project_entry("last")
        # deleted out of band after the scan
        remove_tree(gone.path)

        result = delete_selected_node_modules([first, gone, last], DeleteOptions())

        assert result.successful == 2
        assert result.failed == 1
        failed = result.details[1]
        assert not failed.success
        assert "does not exist" in failed.error
        assert failed.error_kind == DeletionErrorKind.SAFETY
        assert not os.path.exists(last.path)

    def test_progress_callback(self, project_entry):
        entries = [project_entry("a"), project_entry("b", selected=False), project_entry("c")]
        calls = []

        delete_selected_node_modules(
            entries, DeleteOptions(dry_run=True), lambda *args: calls.append(args)
        )

        assert calls == [(1, 2, "a"), (2, 2, "c")]

    def test_empty_batch(self):
        result = delete_selected_node_modules([], DeleteOptions())
        assert result == DeletionResult()

    def test_outcome_counts_match(self, project_entry):
        entries = [project_entry("a"), project_entry("b")]
        result = delete_selected_node_modules(entries, DeleteOptions())
        assert result.successful + result.failed == result.total_attempted == len(result.details)

    def test_failed_removal_without_force_frees_nothing(self, project_entry):
        entry = project_entry("stuck")
        denied = PermissionError(errno.EACCES, "Permission denied", entry.path)

        with patch("nmclean.deletion.shutil.rmtree", side_effect=denied), patch(
            "nmclean.deletion.subprocess.run"
        ) as run:
            result = delete_selected_node_modules([entry], DeleteOptions(force=False))

        assert result.successful == 0
        assert result.failed == 1
        assert result.bytes_freed == 0
        assert result.details[0].error_kind == DeletionErrorKind.PERMISSION
        assert os.path.isdir(entry.path)
        run.assert_not_called()

    def test_leftover_copy_is_not_counted_as_freed(self, project_entry, tmp_path):
        entry = project_entry("stuck")
        denied = PermissionError(errno.EACCES, "Permission denied", entry.path)
        native_failure = subprocess.CalledProcessError(1, ["rm"], stderr="rm: cannot remove")

        with patch("nmclean.deletion.shutil.rmtree", side_effect=denied), patch(
            "nmclean.deletion.subprocess.run", side_effect=native_failure
        ):
            result = delete_selected_node_modules([entry], DeleteOptions(force=True))

        outcome = result.details[0]
        assert not outcome.success
        assert result.bytes_freed == 0
        assert outcome.error_kind == DeletionErrorKind.PERMISSION
        assert "node_modules.old." in outcome.error
        leftovers = [
            p for p in (tmp_path / "stuck").iterdir() if p.name.startswith("node_modules.old.")
        ]
        assert len(leftovers) == 1
        assert (leftovers[0] / "react" / "index.js").exists()


class TestDeleteNodeModules:
    def test_safety_failure_leaves_directory(self, tmp_path, make_entry):
        src = tmp_path / "src"
        src.mkdir()

        outcome = delete_node_modules(make_entry(str(src)), DeleteOptions())

        assert not outcome.success
        assert outcome.error_kind == DeletionErrorKind.SAFETY
        assert src.exists()

    def test_in_use_is_skipped(self, project_entry):
        entry = project_entry("busy")
        lock = os.path.join(os.path.dirname(entry.path), "yarn.lock")
        open(lock, "w").close()

        outcome = delete_node_modules(entry, DeleteOptions())

        assert not outcome.success
        assert "in use" in outcome.error
        assert os.path.isdir(entry.path)

    def test_removal_error_is_classified(self, project_entry):
        entry = project_entry("locked")
        error = PermissionError(errno.EACCES, "Permission denied", entry.path)

        with patch("nmclean.deletion.run_removal_strategies", side_effect=error):
            outcome = delete_node_modules(entry, DeleteOptions())

        assert not outcome.success
        assert outcome.error_kind == DeletionErrorKind.PERMISSION
        assert "elevated privileges" in outcome.error

    def test_records_duration(self, project_entry):
        outcome = delete_node_modules(project_entry("a"), DeleteOptions())
        assert outcome.success
        assert outcome.duration_ms >= 0


class TestRemovalStrategies:
    def test_only_direct_removal_without_force(self):
        assert get_removal_strategies() == [remove_tree]

    def test_force_escalates(self):
        assert get_removal_strategies(force=True) == [
            remove_tree,
            remove_after_chmod,
            remove_with_native_command,
            rename_and_remove,
        ]

    def test_partial_removal_stops_the_chain(self):
        calls = []

        def moved_aside(path):
            calls.append("moved_aside")
            raise PartialRemovalError(path + ".old.1", OSError(errno.EBUSY, "busy"))

        def unused(path):
            calls.append("unused")

        with pytest.raises(PartialRemovalError):
            run_removal_strategies("/x/node_modules", [moved_aside, unused])

        assert calls == ["moved_aside"]

    def test_stops_at_first_success(self):
        calls = []

        def failing(path):
            calls.append(("failing", path))
            raise OSError(errno.EACCES, "denied")

        def working(path):
            calls.append(("working", path))

        def unused(path):
            calls.append(("unused", path))

        run_removal_strategies("/x/node_modules", [failing, working, unused])

        assert calls == [("failing", "/x/node_modules"), ("working", "/x/node_modules")]

    def test_raises_first_error_when_all_fail(self):
        first_error = OSError(errno.EACCES, "denied")

        def first(path):
            raise first_error

        def second(path):
            raise OSError(errno.EIO, "io")

        with pytest.raises(OSError) as exc_info:
            run_removal_strategies("/x/node_modules", [first, second])

        assert exc_info.value is first_error

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_chmod_then_remove(self, tmp_path):
        target = tmp_path / "node_modules"
        (target / "pkg").mkdir(parents=True)
        (target / "pkg" / "index.js").write_text("x")
        os.chmod(target / "pkg", 0o500)

        remove_after_chmod(str(target))

        assert not target.exists()

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX symlinks")
    def test_make_writable_skips_symlinks(self, tmp_path):
        outside = tmp_path / "outside.txt"
        outside.write_text("x")
        os.chmod(outside, 0o400)
        target = tmp_path / "node_modules"
        target.mkdir()
        os.symlink(outside, target / "link")

        make_writable_recursive(str(target))

        assert oct(outside.stat().st_mode & 0o777) == oct(0o400)

    def test_rename_and_remove(self, tmp_path):
        target = tmp_path / "node_modules"
        (target / "pkg").mkdir(parents=True)

        rename_and_remove(str(target))

        assert not target.exists()
        assert list(tmp_path.iterdir()) == []

    def test_rename_leaves_copy_when_removal_fails(self, tmp_path):
        target = tmp_path / "node_modules"
        (target / "pkg").mkdir(parents=True)

        with patch("nmclean.deletion.shutil.rmtree", side_effect=OSError(errno.EBUSY, "busy")):
            with pytest.raises(PartialRemovalError) as exc_info:
                rename_and_remove(str(target))

        assert not target.exists()
        leftovers = [p.name for p in tmp_path.iterdir()]
        assert len(leftovers) == 1
        assert leftovers[0].startswith("node_modules.old.")
        assert exc_info.value.leftover_path == str(tmp_path / leftovers[0])
        assert exc_info.value.errno == errno.EBUSY

    def test_native_command_failure_becomes_oserror(self, tmp_path):
        error = subprocess.CalledProcessError(1, ["rm"], stderr="rm: cannot remove")
        with patch("nmclean.deletion.subprocess.run", side_effect=error):
            with pytest.raises(OSError, match="cannot remove"):
                remove_with_native_command(str(tmp_path / "node_modules"))

    def test_native_command_leaving_directory(self, tmp_path):
        target = tmp_path / "node_modules"
        target.mkdir()
        with patch("nmclean.deletion.subprocess.run"):
            with pytest.raises(OSError) as exc_info:
                remove_with_native_command(str(target))
        assert exc_info.value.errno == errno.ENOTEMPTY

    @pytest.mark.skipif(sys.platform == "win32", reason="uses rm")
    def test_native_command_removes(self, tmp_path):
        target = tmp_path / "node_modules"
        (target / "a" / "b").mkdir(parents=True)
        remove_with_native_command(str(target))
        assert not target.exists()


class TestClassifyError:
    def test_permission(self):
        kind, message = classify_error(PermissionError(errno.EPERM, "nope"))
        assert kind == DeletionErrorKind.PERMISSION
        assert "sudo/Administrator" in message

    def test_busy(self):
        kind, message = classify_error(OSError(errno.EBUSY, "busy"))
        assert kind == DeletionErrorKind.BUSY
        assert message == "Directory in use - close any programs using these files"

    def test_not_empty(self):
        kind, message = classify_error(OSError(errno.ENOTEMPTY, "not empty"))
        assert kind == DeletionErrorKind.NOT_EMPTY
        assert "--force" in message

    def test_other_keeps_raw_message(self):
        kind, message = classify_error(OSError("disk on fire"))
        assert kind == DeletionErrorKind.OTHER
        assert message == "disk on fire"


class TestReports:
    def test_preview(self, make_entry):
        entries = [
            make_entry("/work/app/node_modules", 2 * MB, selected=True),
            make_entry("/work/api/node_modules", 3 * MB, selected=True),
            make_entry("/work/web/node_modules", 50 * MB),
        ]

        preview = generate_deletion_preview(entries, cwd="/work")

        assert "2 node_modules directories" in preview
        assert "./app/node_modules (2.0 MB)" in preview
        assert "web" not in preview
        assert "Total space to reclaim: 5.0 MB" in preview

    def test_preview_nothing_selected(self, make_entry):
        preview = generate_deletion_preview([make_entry()])
        assert preview == "No node_modules selected for deletion."

    def test_json_report(self, project_entry):
        entries = [project_entry("a", 5 * MB)]
        result = delete_selected_node_modules(entries, DeleteOptions(dry_run=True))

        report = json.loads(generate_json_report(result))

        assert report["summary"]["successful"] == 1
        assert report["summary"]["bytes_freed"] == 5 * MB
        assert report["summary"]["bytes_freed_human"] == "5.0 MB"
        assert report["details"][0]["project_name"] == "a"
        assert report["details"][0]["error_kind"] is None

    def test_remove_deleted_entries(self, project_entry):
        done = project_entry("done")
        gone = project_entry("gone")
        remove_tree(gone.path)
        untouched = project_entry("untouched", selected=False)

        entries = [done, gone, untouched]
        result = delete_selected_node_modules(entries, DeleteOptions())

        assert remove_deleted_entries(entries, result) == [gone, untouched]
