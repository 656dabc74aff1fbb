from hideseek.models.event import PAUSE_CHANGED, PHASE_CHANGED
from hideseek.models.player import GamePhase, GameSize
from hideseek.services.session_machine import STORAGE_KEY, SessionStateMachine

from conftest import add_players


def _play_round(machine, hider_id, hiding_ms):
    assert machine.start_round(hider_id).success
    assert machine.start_seeking().success
    assert machine.enter_hiding_zone().success
    assert machine.hider_found().success
    return machine.end_round(hiding_ms)


def test_two_player_scenario(machine):
    alice, bob = add_players(machine, "Alice", "Bob")

    result = _play_round(machine, alice, 3_600_000)

    assert result.success
    assert machine.get_player(alice).total_hiding_time_ms == 3_600_000
    assert machine.get_player(bob).total_hiding_time_ms == 0
    assert machine.all_players_have_been_hider is False
    assert machine.phase == GamePhase.SETUP
    assert machine.round_number == 1


def test_game_over_once_everyone_has_hidden(machine):
    alice, bob = add_players(machine, "Alice", "Bob")
    _play_round(machine, alice, 1000)
    _play_round(machine, bob, 2000)

    assert machine.all_players_have_been_hider is True
    assert machine.phase == GamePhase.GAME_OVER
    assert machine.round_number == 2


def test_hider_found_directly_from_seeking(machine):
    alice, _ = add_players(machine, "Alice", "Bob")
    machine.start_round(alice)
    machine.start_seeking()

    assert machine.hider_found().success
    assert machine.phase == GamePhase.ROUND_COMPLETE


def test_invalid_transitions_fail_without_changing_state(machine):
    alice, _ = add_players(machine, "Alice", "Bob")

    assert machine.start_seeking().success is False
    assert machine.hider_found().success is False
    assert machine.end_round(10).success is False
    assert machine.phase == GamePhase.SETUP

    machine.start_round(alice)
    result = machine.hider_found()
    assert result.success is False
    assert result.error
    assert machine.phase == GamePhase.HIDING_PERIOD
    assert machine.add_player("Late").success is False


def test_start_round_requires_two_players_and_known_hider(machine):
    (alice,) = add_players(machine, "Alice")
    assert machine.start_round(alice).error == "At least 2 players are required"

    add_players(machine, "Bob")
    assert machine.start_round("nobody").error == "Player not found"
    assert machine.round_number == 0


def test_end_round_moves_exactly_one_players_time(machine):
    alice, bob, carol = add_players(machine, "Alice", "Bob", "Carol")
    _play_round(machine, bob, 5000)

    ranked = machine.players_ranked_by_time
    assert [p.id for p in ranked] == [bob, alice, carol]
    assert sum(p.total_hiding_time_ms for p in ranked) == 5000


def test_end_round_accepts_zero_and_rejects_negative_time(machine):
    alice, bob = add_players(machine, "Alice", "Bob")
    machine.start_round(alice)
    machine.start_seeking()
    machine.hider_found()

    refused = machine.end_round(-1)
    assert refused.success is False
    assert refused.error == "Hiding time must not be negative"
    assert machine.phase == GamePhase.ROUND_COMPLETE

    assert machine.end_round(0).success
    assert machine.get_player(alice).total_hiding_time_ms == 0


def test_ranking_ties_keep_insertion_order(machine):
    alice, bob, carol = add_players(machine, "Alice", "Bob", "Carol")
    _play_round(machine, carol, 1000)
    _play_round(machine, alice, 1000)

    assert [p.id for p in machine.players_ranked_by_time] == [alice, carol, bob]


def test_derived_player_queries(machine):
    alice, bob, carol = add_players(machine, "Alice", "Bob", "Carol")
    machine.start_round(bob)

    assert machine.current_hider.id == bob
    assert [p.id for p in machine.seekers] == [alice, carol]
    assert [p.id for p in machine.players_who_havent_been_hider] == [alice, carol]


def test_pause_only_during_active_round(machine, bus):
    seen = []
    bus.subscribe(PAUSE_CHANGED, lambda e: seen.append(e.payload["is_paused"]))
    alice, _ = add_players(machine, "Alice", "Bob")

    assert machine.pause_game().success is False

    machine.start_round(alice)
    assert machine.pause_game().success
    assert machine.pause_game().success is False
    assert machine.phase == GamePhase.HIDING_PERIOD
    assert machine.resume_game().success
    assert machine.resume_game().success is False
    assert seen == [True, False]


def test_phase_changes_are_published(machine, bus):
    seen = []
    bus.subscribe(PHASE_CHANGED, lambda e: seen.append((e.payload["old"], e.payload["new"])))
    alice, _ = add_players(machine, "Alice", "Bob")
    machine.start_round(alice)
    machine.start_seeking()

    assert seen == [
        (GamePhase.SETUP, GamePhase.HIDING_PERIOD),
        (GamePhase.HIDING_PERIOD, GamePhase.SEEKING),
    ]


def test_move_reopens_hiding_period_with_override(machine):
    alice, _ = add_players(machine, "Alice", "Bob")
    machine.start_round(alice)
    assert machine.hiding_period_ms() == 30 * 60_000
    assert machine.grant_move_hiding_period(600_000).success is False

    machine.start_seeking()
    assert machine.grant_move_hiding_period(600_000).success
    assert machine.phase == GamePhase.HIDING_PERIOD
    assert machine.move_active
    assert machine.hiding_period_ms() == 600_000

    machine.start_seeking()
    assert machine.move_active is False
    assert machine.hiding_period_ms() == 30 * 60_000


def test_game_size_only_in_setup(machine):
    alice, _ = add_players(machine, "Alice", "Bob")
    assert machine.set_game_size(GameSize.LARGE).success
    assert machine.hiding_period_ms() == 180 * 60_000

    machine.start_round(alice)
    assert machine.set_game_size(GameSize.SMALL).success is False


def test_remove_player_in_setup(machine):
    alice, bob = add_players(machine, "Alice", "Bob")
    assert machine.remove_player(alice).success
    assert machine.remove_player(alice).error == "Player not found"
    assert [p.id for p in machine.players] == [bob]


def test_reset_game_returns_to_setup(machine):
    alice, _ = add_players(machine, "Alice", "Bob")
    machine.start_round(alice)
    machine.pause_game()

    machine.reset_game()

    assert machine.phase == GamePhase.SETUP
    assert machine.players == []
    assert machine.round_number == 0
    assert machine.is_paused is False


def test_state_survives_restart(storage, bus):
    first = SessionStateMachine(storage, bus)
    alice, _ = add_players(first, "Alice", "Bob")
    first.start_round(alice)

    second = SessionStateMachine(storage, bus)
    assert second.rehydrate()
    assert second.phase == GamePhase.HIDING_PERIOD
    assert second.current_hider.id == alice
    assert second.round_number == 1


def test_corrupt_session_record_is_discarded(storage, bus):
    storage.put_raw(STORAGE_KEY, '{"phase": "nonsense"}')
    machine = SessionStateMachine(storage, bus)

    assert machine.rehydrate() is False
    assert machine.phase == GamePhase.SETUP
    assert storage.load(STORAGE_KEY) is None
