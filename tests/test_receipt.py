"""Tests for Receipt persistence and standalone revert.

Verifies:
1. Write + load round trip keeps settings, tags, states and parameters.
2. Reverting a loaded receipt removes exactly the install's side effects,
   last action first.
3. Failures are collected and the remaining receipt keeps only what is left.
4. Malformed receipts raise ReceiptError.
"""

import json

import pytest

from provisionkit.actions import ConfigureInitService
from provisionkit.model.settings import InitSystem
from provisionkit.plan import InstallPlan
from provisionkit.receipt import Receipt, ReceiptError, RevertFailedError


@pytest.fixture
def installed(systemd_host, systemd_settings, tmp_path):
    """Install on the systemd host and write the receipt to disk."""
    before = systemd_host.snapshot()
    receipt = InstallPlan.new(systemd_settings, systemd_host).install(systemd_host)
    path = tmp_path / "receipt.json"
    receipt.write(path)
    return before, path


def test_written_receipt_format(installed):
    _, path = installed
    data = json.loads(path.read_text())

    assert data["version"] == 1
    assert data["settings"]["init"] == "systemd"
    assert [a["action"] for a in data["actions"]] == [
        "create_directory",
        "create_directory",
        "create_file",
        "configure_init_service",
    ]
    assert all(a["state"] == "completed" for a in data["actions"])
    assert data["actions"][3]["params"]["layout"]["daemon_name"] == "provisionkit-daemon"


def test_load_rebuilds_actions(installed):
    _, path = installed
    receipt = Receipt.load(path)

    assert receipt.settings.init == InitSystem.SYSTEMD
    assert all(s.completed for s in receipt.actions)
    init_action = receipt.actions[3].action
    assert isinstance(init_action, ConfigureInitService)
    assert init_action.init == InitSystem.SYSTEMD
    assert init_action.layout.socket_unit == "provisionkit-daemon.socket"


def test_revert_removes_exactly_the_side_effects(installed, systemd_host, layout):
    before, path = installed
    receipt = Receipt.load(path)

    receipt.revert(systemd_host)

    assert systemd_host.snapshot() == before
    assert not any(s.completed for s in receipt.actions)
    # Reverse order: units before the config file, config file before its directory
    assert systemd_host.index_of("remove", layout.socket_dest) < systemd_host.index_of(
        "remove", layout.config_file
    )
    assert systemd_host.index_of("remove", layout.config_file) < systemd_host.index_of(
        "rmdir", layout.config_dir
    )


def test_revert_collects_failures_and_keeps_remaining(installed, systemd_host, layout):
    _, path = installed
    receipt = Receipt.load(path)
    systemd_host.fail("systemctl", "daemon-reload")

    with pytest.raises(RevertFailedError) as exc:
        receipt.revert(systemd_host)

    assert [e.tag for e in exc.value.errors] == ["configure_init_service"]
    assert [s.tag for s in exc.value.remaining.actions] == ["configure_init_service"]
    # Earlier actions were still reverted
    assert not systemd_host.exists(layout.config_file)


def test_remaining_receipt_round_trips(installed, systemd_host, tmp_path):
    _, path = installed
    receipt = Receipt.load(path)
    systemd_host.fail("systemctl", "daemon-reload")
    with pytest.raises(RevertFailedError) as exc:
        receipt.revert(systemd_host)

    retry_path = tmp_path / "retry.json"
    exc.value.remaining.write(retry_path)
    systemd_host.failing.clear()

    Receipt.load(retry_path).revert(systemd_host)


def test_load_missing_file(tmp_path):
    with pytest.raises(ReceiptError):
        Receipt.load(tmp_path / "nope.json")


def test_load_invalid_json(tmp_path):
    path = tmp_path / "receipt.json"
    path.write_text("{not json")

    with pytest.raises(ReceiptError):
        Receipt.load(path)


def test_load_unknown_action(tmp_path):
    path = tmp_path / "receipt.json"
    path.write_text(
        json.dumps(
            {
                "version": 1,
                "settings": {"init": "none"},
                "actions": [{"action": "format_disk", "state": "completed", "params": {}}],
            }
        )
    )

    with pytest.raises(ReceiptError) as exc:
        Receipt.load(path)
    assert "format_disk" in str(exc.value)


def test_load_bad_params(tmp_path):
    path = tmp_path / "receipt.json"
    path.write_text(
        json.dumps(
            {
                "version": 1,
                "settings": {"init": "none"},
                "actions": [{"action": "create_file", "state": "completed", "params": {"bogus": 1}}],
            }
        )
    )

    with pytest.raises(ReceiptError):
        Receipt.load(path)


def test_load_wrong_version(tmp_path):
    path = tmp_path / "receipt.json"
    path.write_text(json.dumps({"version": 2, "settings": {}, "actions": []}))

    with pytest.raises(ReceiptError):
        Receipt.load(path)


def test_write_leaves_no_temp_files(installed):
    _, path = installed
    assert [p.name for p in path.parent.iterdir()] == ["receipt.json"]
