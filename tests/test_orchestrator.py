"""End-to-end tests for the update orchestrator."""

import os

import pytest

from deploy_helper.config import load_config
from deploy_helper.orchestrator import UpdateOrchestrator, UpdateState
from deploy_helper.units import EnvironmentFacts
from deploy_helper.utils.errors import CommandError, ConcurrentUpdateError, UnitInstallError
from deploy_helper.utils.installer import InstallStatus
from deploy_helper.utils.lock import UpdateLock
from tests.conftest import FakeSystemctl, write_config

UNIT_NAMES = ["run-demo.service", "update-demo.service", "update-demo.timer"]


@pytest.fixture
def make_orchestrator(project_dir, unit_dir, lock_dir, fake_systemctl):
    def _make(systemctl=None, **config_kwargs):
        config = load_config(write_config(project_dir, **config_kwargs))
        env = EnvironmentFacts(
            command=("/usr/local/bin/deploy-helper",),
            working_directory=config.config_dir,
            config_path=config.config_path,
        )
        return UpdateOrchestrator(config, unit_dir=unit_dir, lock_dir=lock_dir,
                                  systemctl=systemctl or fake_systemctl, environment=env)
    return _make


def _lock_is_free(lock_dir):
    with UpdateLock.for_program("demo", lock_dir) as lock:
        return lock.held


def test_first_update_installs_and_starts_everything(make_orchestrator, unit_dir, lock_dir, fake_systemctl):
    orchestrator = make_orchestrator(update_commands=["true"], run_commands=["true"], interval=60)

    report = orchestrator.run()

    assert orchestrator.state is UpdateState.DONE
    assert sorted(os.listdir(unit_dir)) == UNIT_NAMES
    assert "OnUnitActiveSec=60" in (unit_dir / "update-demo.timer").read_text()
    assert set(report.units.values()) == {InstallStatus.CREATED}
    assert fake_systemctl.calls == [
        ("daemon-reload",),
        ("enable", "--now", "update-demo.timer"),
        ("enable", "--now", "run-demo.service"),
    ]
    assert report.restarted == []
    assert _lock_is_free(lock_dir)


def test_unchanged_second_update_touches_nothing(make_orchestrator, unit_dir, fake_systemctl):
    make_orchestrator().run()
    mtimes = {name: (unit_dir / name).stat().st_mtime_ns for name in UNIT_NAMES}
    fake_systemctl.calls.clear()

    report = make_orchestrator().run()

    assert set(report.units.values()) == {InstallStatus.UNCHANGED}
    assert not report.reloaded
    assert fake_systemctl.calls == [("enable", "--now", "update-demo.timer")]
    assert {name: (unit_dir / name).stat().st_mtime_ns for name in UNIT_NAMES} == mtimes


def test_changed_binary_restarts_run_service_once(make_orchestrator, project_dir, fake_systemctl):
    (project_dir / "demo.bin").write_bytes(b"v1")
    make_orchestrator().run()
    fake_systemctl.calls.clear()

    report = make_orchestrator(update_commands=["printf v2 > demo.bin"]).run()

    assert report.changed_paths == [project_dir / "demo.bin"]
    assert fake_systemctl.count("restart", "run-demo.service") == 1
    assert fake_systemctl.count("daemon-reload") == 0
    assert report.restarted == ["run-demo.service"]


def test_identical_rebuild_does_not_restart(make_orchestrator, project_dir, fake_systemctl):
    (project_dir / "demo.bin").write_bytes(b"v1")
    make_orchestrator().run()
    fake_systemctl.calls.clear()

    report = make_orchestrator(update_commands=["printf v1 > demo.bin.new", "mv demo.bin.new demo.bin"]).run()

    assert not report.binary_changed
    assert fake_systemctl.count("restart", "run-demo.service") == 0


def test_extra_watched_path_triggers_restart(make_orchestrator, project_dir, fake_systemctl):
    (project_dir / "static").mkdir()
    make_orchestrator(watch=["static"]).run()
    fake_systemctl.calls.clear()

    make_orchestrator(watch=["static"], update_commands=["echo hi > static/index.html"]).run()

    assert fake_systemctl.count("restart", "run-demo.service") == 1


def test_interval_change_reloads_without_restart(make_orchestrator, fake_systemctl):
    make_orchestrator(interval=60).run()
    fake_systemctl.calls.clear()

    report = make_orchestrator(interval=120).run()

    assert report.units["update-demo.timer"] is InstallStatus.UPDATED
    assert report.units["run-demo.service"] is InstallStatus.UNCHANGED
    assert fake_systemctl.calls == [
        ("daemon-reload",),
        ("enable", "--now", "update-demo.timer"),
    ]


def test_rewritten_run_unit_restarts_service(make_orchestrator, unit_dir, fake_systemctl):
    make_orchestrator().run()
    (unit_dir / "run-demo.service").write_text("stale\n")
    fake_systemctl.calls.clear()

    make_orchestrator().run()

    assert fake_systemctl.calls == [
        ("daemon-reload",),
        ("enable", "--now", "update-demo.timer"),
        ("restart", "run-demo.service"),
    ]


def test_failing_command_writes_no_units(make_orchestrator, unit_dir, lock_dir, fake_systemctl):
    orchestrator = make_orchestrator(update_commands=["false"])

    with pytest.raises(CommandError) as exc_info:
        orchestrator.run()

    assert exc_info.value.command == "false"
    assert exc_info.value.exit_status == 1
    assert orchestrator.state is UpdateState.FAILED
    assert not unit_dir.exists()
    assert fake_systemctl.calls == []
    assert _lock_is_free(lock_dir)


def test_later_commands_never_run_after_failure(make_orchestrator, project_dir):
    orchestrator = make_orchestrator(update_commands=["touch one", "exit 4", "touch three"])

    with pytest.raises(CommandError):
        orchestrator.run()

    assert (project_dir / "one").exists()
    assert not (project_dir / "three").exists()


def test_update_commands_run_in_config_directory(make_orchestrator, project_dir):
    make_orchestrator(update_commands=["touch marker"]).run()

    assert (project_dir / "marker").exists()


def test_concurrent_update_fails_without_running_commands(make_orchestrator, project_dir, lock_dir, fake_systemctl):
    orchestrator = make_orchestrator(update_commands=["touch ran"])

    with UpdateLock.for_program("demo", lock_dir):
        with pytest.raises(ConcurrentUpdateError):
            orchestrator.run()

    assert orchestrator.state is UpdateState.FAILED
    assert not (project_dir / "ran").exists()
    assert fake_systemctl.calls == []
    assert _lock_is_free(lock_dir)


def test_install_failure_releases_lock(make_orchestrator, unit_dir, lock_dir, fake_systemctl):
    unit_dir.write_text("not a directory")
    orchestrator = make_orchestrator()

    with pytest.raises(UnitInstallError):
        orchestrator.run()

    assert orchestrator.state is UpdateState.FAILED
    assert fake_systemctl.calls == []
    assert _lock_is_free(lock_dir)


def test_systemctl_failure_releases_lock(make_orchestrator, lock_dir, fake_systemctl):
    def broken_reload():
        raise CommandError("systemctl daemon-reload", 1)

    fake_systemctl.daemon_reload = broken_reload
    orchestrator = make_orchestrator()

    with pytest.raises(CommandError):
        orchestrator.run()

    assert orchestrator.state is UpdateState.FAILED
    assert _lock_is_free(lock_dir)


def test_retry_after_failed_reload_converges(make_orchestrator, unit_dir, fake_systemctl):
    def broken_reload():
        raise CommandError("systemctl daemon-reload", 1)

    fake_systemctl.daemon_reload = broken_reload
    with pytest.raises(CommandError):
        make_orchestrator().run()

    healthy = FakeSystemctl(unit_dir)
    report = make_orchestrator(systemctl=healthy).run()

    assert set(report.units.values()) == {InstallStatus.UNCHANGED}
    assert healthy.calls == [
        ("daemon-reload",),
        ("enable", "--now", "update-demo.timer"),
        ("enable", "--now", "run-demo.service"),
    ]
    assert report.restarted == []


def test_retry_after_failed_timer_enable_starts_run_service(make_orchestrator, fake_systemctl):
    enable_now = fake_systemctl.enable_now

    def broken_enable(unit):
        raise CommandError(f"systemctl enable --now {unit}", 1)

    fake_systemctl.enable_now = broken_enable
    with pytest.raises(CommandError):
        make_orchestrator().run()
    fake_systemctl.enable_now = enable_now
    fake_systemctl.calls.clear()

    make_orchestrator().run()

    assert fake_systemctl.calls == [
        ("enable", "--now", "update-demo.timer"),
        ("enable", "--now", "run-demo.service"),
    ]


def test_enabled_run_service_is_restarted_not_re_enabled(make_orchestrator, project_dir, fake_systemctl):
    (project_dir / "demo.bin").write_bytes(b"v1")
    fake_systemctl.enabled.add("run-demo.service")

    report = make_orchestrator(update_commands=["printf v2 > demo.bin"]).run()

    assert report.started == ["update-demo.timer"]
    assert fake_systemctl.count("enable", "--now", "run-demo.service") == 0
    assert fake_systemctl.count("restart", "run-demo.service") == 1


def test_state_walk_is_logged(make_orchestrator, caplog):
    caplog.set_level("DEBUG", logger="deploy_helper")

    make_orchestrator().run()

    transitions = [r.getMessage() for r in caplog.records if "->" in r.getMessage()]
    assert transitions == [
        "[demo] idle -> lock_acquiring",
        "[demo] lock_acquiring -> updating",
        "[demo] updating -> detecting",
        "[demo] detecting -> generating",
        "[demo] generating -> installing",
        "[demo] installing -> activating",
        "[demo] activating -> done",
    ]
