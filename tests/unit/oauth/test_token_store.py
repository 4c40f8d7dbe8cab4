"""Unit tests for credential models and token stores."""

from __future__ import annotations

import json
import logging
import os
import threading
import time

import pytest

from fakes import NOW, credential, fake_clock_factory
from jira_bridge.oauth.models import AccessibleResource, OAuthCredential, choose_tenant
from jira_bridge.oauth.state import generate_state, states_match
from jira_bridge.oauth.store import DiskTokenStore, MemoryTokenStore, file_lock


# --------------------------------------------------------------------------- #
# Models                                                                      #
# --------------------------------------------------------------------------- #
def test_expiry_boundary_is_inclusive():
    cred = credential(expires_at=NOW)
    assert cred.is_expired(clock=fake_clock_factory(NOW))
    assert not cred.is_expired(clock=fake_clock_factory(NOW - 1))
    assert cred.is_expired(clock=fake_clock_factory(NOW - 30), leeway=30)


def test_credential_dict_round_trip_keeps_metadata():
    cred = credential(cloud_id="c-1")
    assert OAuthCredential.from_dict(cred.to_dict()) == cred


def test_choose_tenant_prefers_writable_site():
    sites = [
        AccessibleResource(id="a", scopes=("read:jira-work",)),
        AccessibleResource(id="b", scopes=("read:jira-work", "write:jira-work")),
    ]
    assert choose_tenant(sites).id == "b"
    assert choose_tenant(sites[:1]).id == "a"
    assert choose_tenant([]) is None


def test_states_match_rejects_empty_and_mismatch():
    state = generate_state()
    assert states_match(state, state)
    assert not states_match(state, generate_state())
    assert not states_match(None, state)
    assert not states_match(state, "")


# --------------------------------------------------------------------------- #
# DiskTokenStore                                                              #
# --------------------------------------------------------------------------- #
def test_disk_store_round_trip_and_file_format(tmp_path):
    store = DiskTokenStore(base_dir=tmp_path)
    cred = credential()

    store.put("system", cred)

    path = tmp_path / "tokens" / "system.json"
    assert path.exists()
    on_disk = json.loads(path.read_text())
    assert {"access_token", "refresh_token", "expires_at"} <= set(on_disk)
    assert store.get("system") == cred


def test_disk_store_missing_principal_returns_none(tmp_path):
    assert DiskTokenStore(base_dir=tmp_path).get("nobody") is None


def test_disk_store_slugs_unsafe_principal_ids(tmp_path):
    store = DiskTokenStore(base_dir=tmp_path)
    cred = credential(principal_id="../Team A")
    store.put("../Team A", cred)

    path = store.path_for("../Team A")
    assert path.parent == tmp_path / "tokens"
    assert ".." not in path.name
    assert store.get("../Team A") == cred
    assert store.path_for("team-a") != path


def test_disk_store_put_replaces_whole_record(tmp_path):
    store = DiskTokenStore(base_dir=tmp_path)
    store.put("system", credential(access_token="old", refresh_token="rt-old"))
    store.put("system", credential(access_token="new", refresh_token=None))

    stored = store.get("system")
    assert stored.access_token == "new"
    assert stored.refresh_token is None
    assert not list((tmp_path / "tokens").glob("*.tmp"))


def test_disk_store_rejects_principal_mismatch(tmp_path):
    store = DiskTokenStore(base_dir=tmp_path)
    with pytest.raises(ValueError):
        store.put("other", credential(principal_id="system"))


def test_disk_store_delete_is_idempotent(tmp_path):
    store = DiskTokenStore(base_dir=tmp_path)
    store.put("system", credential())
    store.delete("system")
    store.delete("system")
    assert store.get("system") is None


def test_disk_store_concurrent_writers_leave_a_complete_record(tmp_path):
    store = DiskTokenStore(base_dir=tmp_path)
    writers = [
        threading.Thread(target=store.put, args=("system", credential(access_token=f"at-{i}")))
        for i in range(8)
    ]
    for t in writers:
        t.start()
    for t in writers:
        t.join()

    assert store.get("system").access_token in {f"at-{i}" for i in range(8)}


# --------------------------------------------------------------------------- #
# MemoryTokenStore / file_lock                                                #
# --------------------------------------------------------------------------- #
def test_memory_store_contract():
    store = MemoryTokenStore()
    cred = credential()
    store.put("system", cred)
    assert store.get("system") is cred
    store.delete("system")
    assert store.get("system") is None


def test_file_lock_times_out_when_held(tmp_path):
    lock = tmp_path / "x.lock"
    with file_lock(lock):
        with pytest.raises(TimeoutError):
            with file_lock(lock, retries=1, delay=0.01):
                pass
    assert not lock.exists()


def test_file_lock_clears_lock_left_by_crashed_holder(tmp_path, caplog):
    lock = tmp_path / "x.lock"
    lock.touch()
    hour_ago = time.time() - 3600
    os.utime(lock, (hour_ago, hour_ago))

    with caplog.at_level(logging.WARNING, logger="jira-bridge"):
        with file_lock(lock, retries=0):
            assert lock.exists()

    assert not lock.exists()
    assert "stale lock" in caplog.text


def test_file_lock_keeps_recent_lock(tmp_path):
    lock = tmp_path / "x.lock"
    lock.touch()
    with pytest.raises(TimeoutError):
        with file_lock(lock, retries=0, stale_after=60):
            pass
    assert lock.exists()
