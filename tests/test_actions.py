"""Tests for the action executor."""

import subprocess

import pytest

from helpers import FakeRunner, write_file
from smart_folders import actions
from smart_folders.actions import ActionExecutor, run_tool
from smart_folders.config import Binding
from smart_folders.errors import ExternalToolError


def _executor(suppression, notifier, runner, pngquant=None):
    return ActionExecutor(
        suppression, notifier, runner=runner, which=lambda name: pngquant
    )


@pytest.fixture
def executor(suppression, notifier, runner):
    return _executor(suppression, notifier, runner)


# -------------------------------------------------------------------------
# Gating
# -------------------------------------------------------------------------

def test_missing_file_is_skipped(executor, runner, inbox):
    rec = executor.process(inbox / "gone.png", Binding(path=str(inbox), action="resize-50"))

    assert rec.skipped
    assert runner.calls == []


def test_directory_is_skipped(executor, runner, inbox):
    (inbox / "sub").mkdir()

    rec = executor.process(inbox / "sub", Binding(path=str(inbox), action="resize-50"))

    assert rec.skipped
    assert runner.calls == []


@pytest.mark.parametrize("name", [".hidden.png", ".png"])
def test_hidden_files_are_never_transformed(executor, runner, inbox, name):
    write_file(inbox / name)

    rec = executor.process(inbox / name, Binding(path=str(inbox), action="resize-50", extensions=["png"]))

    assert rec.skipped
    assert runner.calls == []


def test_files_inside_originals_are_never_transformed(executor, runner, inbox):
    backup = write_file(inbox / ".originals" / "a.png")

    rec = executor.process(backup, Binding(path=str(inbox), action="resize-50"))

    assert rec.skipped
    assert runner.calls == []


@pytest.mark.parametrize("filters", [["PNG"], [".png"], ["jpg", ".Png"]])
def test_extension_filter_is_case_and_dot_insensitive(executor, runner, inbox, filters):
    write_file(inbox / "photo.png")

    rec = executor.process(inbox / "photo.png", Binding(path=str(inbox), action="resize-50", extensions=filters))

    assert rec.success
    assert len(runner.calls) == 1


def test_extension_filter_rejects_other_types(executor, runner, inbox):
    write_file(inbox / "clip.mov")

    rec = executor.process(inbox / "clip.mov", Binding(path=str(inbox), action="resize-50", extensions=["png"]))

    assert rec.skipped
    assert runner.calls == []


def test_empty_filter_matches_everything(executor, runner, inbox):
    write_file(inbox / "README")

    rec = executor.process(inbox / "README", Binding(path=str(inbox), command="wc -l {}"))

    assert rec.success


# -------------------------------------------------------------------------
# Predefined actions
# -------------------------------------------------------------------------

@pytest.mark.parametrize("action,size", [("resize-50", "50%"), ("resize-25", "25%")])
def test_resize_in_place(executor, runner, inbox, action, size):
    src = str(write_file(inbox / "a.png"))

    executor.process(src, Binding(path=str(inbox), action=action))

    assert runner.calls == [["convert", src, "-resize", size, src]]


def test_compress_png_prefers_pngquant(suppression, notifier, runner, inbox):
    src = str(write_file(inbox / "a.png"))
    executor = _executor(suppression, notifier, runner, pngquant="/usr/bin/pngquant")

    executor.process(src, Binding(path=str(inbox), action="compress"))

    assert runner.calls == [["pngquant", "--force", "--quality=65-80", "--output", src, src]]


def test_compress_png_falls_back_to_convert(executor, runner, inbox):
    src = str(write_file(inbox / "a.PNG"))

    executor.process(src, Binding(path=str(inbox), action="compress"))

    assert runner.calls == [["convert", src, "-strip", "-colors", "256", src]]


@pytest.mark.parametrize("name", ["a.jpg", "a.jpeg", "a.webp"])
def test_compress_lossy_formats(executor, runner, inbox, name):
    src = str(write_file(inbox / name))

    executor.process(src, Binding(path=str(inbox), action="compress"))

    assert runner.calls == [["convert", src, "-strip", "-quality", "75", src]]


def test_compress_other_formats_is_a_successful_no_op(executor, runner, inbox):
    src = write_file(inbox / "notes.txt")

    rec = executor.process(src, Binding(path=str(inbox), action="compress"))

    assert rec.success
    assert runner.calls == []


def test_convert_webp_removes_original_after_success(executor, inbox, suppression):
    src = write_file(inbox / "a.png")

    def produce(argv):
        (inbox / "a.webp").write_bytes(b"webp")

    executor._runner = FakeRunner(on_call=produce)
    rec = executor.process(src, Binding(path=str(inbox), action="convert-webp"))

    assert rec.success
    assert executor._runner.calls == [["convert", str(src), "-quality", "80", str(inbox / "a.webp")]]
    assert not src.exists()
    assert suppression.is_suppressed(str(inbox / "a.webp"))


@pytest.mark.parametrize("action,expected", [
    ("convert-mp4", ["ffmpeg", "-i", "{src}", "-c:v", "libx264", "-c:a", "aac", "-y", "{out}.mp4"]),
    ("convert-mp3", ["ffmpeg", "-i", "{src}", "-c:a", "libmp3lame", "-q:a", "2", "-y", "{out}.mp3"]),
])
def test_ffmpeg_conversions(executor, runner, inbox, action, expected):
    src = write_file(inbox / "clip.mov")
    stem = str(inbox / "clip")

    executor.process(src, Binding(path=str(inbox), action=action))

    assert runner.calls == [[a.format(src=src, out=stem) for a in expected]]
    assert not src.exists()


def test_failed_conversion_keeps_original(suppression, notifier, inbox):
    src = write_file(inbox / "a.png")
    executor = _executor(suppression, notifier, FakeRunner(fail=True))

    rec = executor.process(src, Binding(path=str(inbox), action="convert-webp"))

    assert not rec.success
    assert "exit status 1" in rec.error
    assert src.exists()
    assert notifier.messages == ["Failed: a.png"]


def test_conversion_to_same_format_is_a_no_op(executor, runner, inbox):
    src = write_file(inbox / "a.webp")

    rec = executor.process(src, Binding(path=str(inbox), action="convert-webp"))

    assert rec.success
    assert runner.calls == []
    assert src.exists()


def test_unknown_action_is_a_failure(executor, runner, inbox, notifier):
    src = write_file(inbox / "a.png")

    rec = executor.process(src, Binding(path=str(inbox), action="sharpen"))

    assert not rec.success
    assert "unknown action" in rec.error
    assert runner.calls == []
    assert notifier.messages == ["Failed: a.png"]


# -------------------------------------------------------------------------
# Custom commands, backups and notifications
# -------------------------------------------------------------------------

def test_custom_command_runs_through_shell(executor, runner, inbox):
    src = write_file(inbox / "my photo.jpg")

    executor.process(src, Binding(path=str(inbox), command="tool {} -o {dir}/{name}.webp"))

    assert runner.calls == [[
        "bash", "-c", f"tool '{src}' -o {inbox}/my photo.webp",
    ]]


def test_custom_command_takes_precedence_over_action(executor, runner, inbox):
    src = write_file(inbox / "a.png")

    executor.process(src, Binding(path=str(inbox), action="resize-50", command="true"))

    assert runner.calls == [["bash", "-c", "true"]]


def test_keep_original_backs_up_before_command_runs(suppression, notifier, inbox):
    src = write_file(inbox / "b.jpg", b"original bytes")
    backup = inbox / ".originals" / "b.jpg"
    seen = []

    def check(argv):
        seen.append(backup.read_bytes())
        src.write_bytes(b"transformed")

    executor = _executor(suppression, notifier, FakeRunner(on_call=check))
    rec = executor.process(
        src,
        Binding(path=str(inbox), command="tool {} -o {dir}/{name}.webp && rm {}", keep_original=True),
    )

    assert rec.backed_up
    assert seen == [b"original bytes"]
    assert backup.read_bytes() == b"original bytes"
    assert suppression.is_suppressed(str(inbox / "b.webp"))


def test_backup_failure_does_not_abort_transformation(executor, runner, inbox):
    (inbox / ".originals").write_text("not a directory")
    src = write_file(inbox / "a.png")

    rec = executor.process(src, Binding(path=str(inbox), action="resize-50", keep_original=True))

    assert not rec.backed_up
    assert rec.success
    assert len(runner.calls) == 1


def test_success_notification(executor, inbox, notifier):
    src = write_file(inbox / "a.png")

    executor.process(src, Binding(path=str(inbox), action="resize-50"))

    assert notifier.messages == ["Processed: a.png"]


def test_notifications_can_be_disabled(suppression, notifier, inbox):
    src = write_file(inbox / "a.png")
    executor = _executor(suppression, notifier, FakeRunner(fail=True))

    executor.process(src, Binding(path=str(inbox), action="resize-50", notify=False))

    assert notifier.messages == []


# -------------------------------------------------------------------------
# Process runner
# -------------------------------------------------------------------------

def test_run_tool_success(monkeypatch):
    monkeypatch.setattr(
        actions.subprocess, "run",
        lambda argv, **kw: subprocess.CompletedProcess(argv, 0, b"", b""),
    )

    run_tool(["convert", "a", "b"])


def test_run_tool_non_zero_exit(monkeypatch):
    monkeypatch.setattr(
        actions.subprocess, "run",
        lambda argv, **kw: subprocess.CompletedProcess(argv, 3, b"", b"no decode delegate"),
    )

    with pytest.raises(ExternalToolError) as excinfo:
        run_tool(["convert", "a", "b"])

    assert excinfo.value.returncode == 3
    assert "no decode delegate" in str(excinfo.value)


def test_run_tool_spawn_failure(monkeypatch):
    def missing(argv, **kw):
        raise FileNotFoundError(2, "No such file or directory", argv[0])

    monkeypatch.setattr(actions.subprocess, "run", missing)

    with pytest.raises(ExternalToolError) as excinfo:
        run_tool(["pngquant", "a"])

    assert excinfo.value.returncode is None
