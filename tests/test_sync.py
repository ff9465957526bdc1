"""Tests for the sync controller's load → mutate → push → persist sequence."""

from __future__ import annotations

import contextlib

import pytest

from anilist_cli.errors import (
    AuthError,
    NoSelection,
    PartialSyncError,
    TransportError,
    ValidationError,
)
from anilist_cli.list_cache import get_cache_path, persist_cache, read_snapshot
from anilist_cli.models import (
    AUTO_UPDATE_AFTER_THRESHOLD,
    AUTO_UPDATE_OFF,
    STATUS_COMPLETED,
    STATUS_CURRENT,
    STATUS_DROPPED,
    UserConfig,
)
from anilist_cli.sync import SyncController, parse_entry_status, parse_progress, parse_score


@pytest.fixture
def controller_for(config_dir, fake_api):
    def _make(config: UserConfig | None = None, **kwargs) -> SyncController:
        return SyncController(
            config=config or UserConfig(selected_id=100),
            client_factory=fake_api.factory,
            **kwargs,
        )

    return _make


def test_increment_completes_and_persists(controller_for, make_entry, make_cache, fake_api) -> None:
    persist_cache(make_cache([make_entry(progress=11, episodes=12, status=STATUS_CURRENT)]))

    result = controller_for().set_progress(None)

    assert fake_api.saved[0].progress == 12
    assert fake_api.saved[0].status == STATUS_COMPLETED
    assert result.previous.progress == 11
    assert result.entry.updated_at == fake_api.updated_at
    stored = read_snapshot().entries[0]
    assert (stored.progress, stored.status) == (12, STATUS_COMPLETED)
    assert stored.updated_at == fake_api.updated_at


def test_push_uses_snapshot_token(controller_for, make_entry, make_cache, fake_api) -> None:
    persist_cache(make_cache([make_entry()], token="cached"))
    controller_for().set_score(7)
    assert fake_api.tokens == ["cached"]


def test_explicit_token_wins(controller_for, make_entry, make_cache, fake_api) -> None:
    persist_cache(make_cache([make_entry()], token="cached"))
    controller_for(token="env").set_score(7)
    assert fake_api.tokens == ["env"]


def test_transport_error_leaves_snapshot_byte_identical(
    controller_for, make_entry, make_cache, fake_api, failing_transport
) -> None:
    persist_cache(make_cache([make_entry(score=4)]))
    before = get_cache_path().read_bytes()
    fake_api.save_error = failing_transport
    controller = controller_for()

    with pytest.raises(TransportError):
        controller.set_score(9)

    assert get_cache_path().read_bytes() == before
    assert controller.load().entries[0].score == 4


def test_persist_failure_after_push_is_partial_sync(
    controller_for, make_entry, make_cache, fake_api, monkeypatch
) -> None:
    persist_cache(make_cache([make_entry(score=4)]))
    controller = controller_for()
    controller.load()

    def _fail(*_args, **_kwargs):
        raise OSError("read-only file system")

    monkeypatch.setattr("anilist_cli.list_cache.write_json_atomic", _fail)

    with pytest.raises(PartialSyncError) as exc_info:
        controller.set_score(9)

    assert exc_info.value.entry.score == 9
    assert len(fake_api.saved) == 1
    assert read_snapshot().entries[0].score == 4


@pytest.mark.parametrize("score", [0, 10])
def test_score_bounds_are_inclusive(controller_for, make_entry, make_cache, score) -> None:
    persist_cache(make_cache([make_entry(score=5)]))
    assert controller_for().set_score(score).entry.score == score


@pytest.mark.parametrize("score", [-1, 11])
def test_out_of_range_score_is_rejected(
    controller_for, make_entry, make_cache, fake_api, score
) -> None:
    persist_cache(make_cache([make_entry(score=5)]))
    with pytest.raises(ValidationError):
        controller_for().set_score(score)
    assert fake_api.saved == []


def test_negative_progress_is_rejected(controller_for, make_entry, make_cache, fake_api) -> None:
    persist_cache(make_cache([make_entry()]))
    with pytest.raises(ValidationError):
        controller_for().set_progress(-1)
    assert fake_api.saved == []


def test_status_change_skips_policy(controller_for, make_entry, make_cache, fake_api) -> None:
    persist_cache(make_cache([make_entry(progress=25, episodes=25, status=STATUS_CURRENT)]))
    result = controller_for().set_status(STATUS_DROPPED)
    assert result.entry.status == STATUS_DROPPED
    assert fake_api.saved[0].status == STATUS_DROPPED


def test_policy_mode_comes_from_config(controller_for, make_entry, make_cache, fake_api) -> None:
    persist_cache(make_cache([make_entry(progress=11, episodes=12)]))
    config = UserConfig(selected_id=100, status_auto_update_mode=AUTO_UPDATE_AFTER_THRESHOLD)
    result = controller_for(config).set_progress(12)
    assert result.entry.status == STATUS_CURRENT


def test_lowering_progress_uncompletes(controller_for, make_entry, make_cache) -> None:
    persist_cache(make_cache([make_entry(progress=12, episodes=12, status=STATUS_COMPLETED)]))
    result = controller_for().set_progress(10)
    assert result.entry.status == STATUS_CURRENT


def test_off_mode_keeps_status(controller_for, make_entry, make_cache) -> None:
    persist_cache(make_cache([make_entry(progress=11, episodes=12)]))
    config = UserConfig(selected_id=100, status_auto_update_mode=AUTO_UPDATE_OFF)
    result = controller_for(config).set_progress(None)
    assert (result.entry.progress, result.entry.status) == (12, STATUS_CURRENT)


def test_no_selection_fails_before_push(controller_for, make_entry, make_cache, fake_api) -> None:
    persist_cache(make_cache([make_entry()]))
    with pytest.raises(NoSelection):
        controller_for(UserConfig()).set_score(5)
    assert fake_api.saved == []


def test_search_text_targets_other_entry(controller_for, make_entry, make_cache, fake_api) -> None:
    persist_cache(
        make_cache(
            [
                make_entry(list_id=100, romaji="Frieren", english="Frieren"),
                make_entry(list_id=200, romaji="Mushishi", english="Mushi-Shi"),
            ]
        )
    )
    config = UserConfig(selected_id=100)
    result = controller_for(config).set_score(9, search_text="mushi")
    assert result.entry.list_id == 200
    assert config.selected_id == 100


def test_select_saves_selection(config_dir, controller_for, make_entry, make_cache) -> None:
    persist_cache(make_cache([make_entry(list_id=1, romaji="Frieren", english="Frieren")]))
    config = UserConfig()
    entry = controller_for(config).select("frieren")
    assert entry.list_id == 1
    assert config.selected_id == 1
    assert (config_dir / "config.json").exists()


def test_missing_token_on_push_is_auth_error(controller_for, make_entry, make_cache) -> None:
    persist_cache(make_cache([make_entry()], token=""))
    with pytest.raises(AuthError):
        controller_for().set_score(5)


def test_load_persist_failure_becomes_warning(
    controller_for, make_entry, fake_api, monkeypatch
) -> None:
    fake_api.entries = [make_entry()]

    def _fail(*_args, **_kwargs):
        raise OSError("disk full")

    monkeypatch.setattr("anilist_cli.list_cache.write_json_atomic", _fail)
    controller = controller_for(token="t")

    cache = controller.load()

    assert len(cache.entries) == 1
    assert len(controller.warnings) == 1


def test_load_happens_once_per_command(controller_for, make_entry, fake_api) -> None:
    fake_api.entries = [make_entry()]
    controller = controller_for(token="t", force_refresh=True)
    controller.load()
    controller.set_score(3)
    assert fake_api.list_fetches == 1


def test_next_airing_refreshes_in_memory_only(controller_for, make_entry, make_cache, fake_api) -> None:
    persist_cache(make_cache([make_entry(progress=3, episodes=12)]))
    before = get_cache_path().read_bytes()
    controller = controller_for()
    entry = controller.resolve_target()

    schedule = controller.next_airing(entry)

    assert fake_api.airing_requests == [(entry.media_id, 4)]
    assert entry.next_airing.episode == schedule.episode
    assert get_cache_path().read_bytes() == before


def test_login_persists_fresh_cache(controller_for, make_entry, fake_api) -> None:
    fake_api.entries = [make_entry()]
    cache = controller_for().login("new-token")
    assert cache.token == "new-token"
    assert read_snapshot().token == "new-token"


def test_wait_indicator_wraps_remote_calls(controller_for, make_entry, make_cache) -> None:
    labels: list[str] = []

    def _wait(label: str):
        labels.append(label)
        return contextlib.nullcontext()

    persist_cache(make_cache([make_entry()]))
    controller_for(wait=_wait).set_score(6)
    assert labels == ["Fetching your list", "Updating entry"]


@pytest.mark.parametrize(
    ("parser", "text"),
    [(parse_progress, "x"), (parse_progress, "-2"), (parse_score, "11"), (parse_score, "7.5")],
)
def test_argument_parsers_reject_bad_input(parser, text) -> None:
    with pytest.raises(ValidationError):
        parser(text)


def test_parse_entry_status_rejects_all_sentinel() -> None:
    assert parse_entry_status("watching") == STATUS_CURRENT
    with pytest.raises(ValidationError):
        parse_entry_status("all")
