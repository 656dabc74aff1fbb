"""Réhydratation des timers et comportement des trois consommateurs."""
from hideseek.models.player import GamePhase
from hideseek.services.game_session import GameSession

from conftest import add_players

MIN = 60_000


def _start_round(game):
    alice, bob = add_players(game.session, "Alice", "Bob")
    game.session.start_round(alice)
    return alice, bob


def _restart(storage, notifier, clock, rng):
    """Simule un kill du process puis un redémarrage sur le même stockage."""
    g = GameSession(storage=storage, notifier=notifier, clock=clock, rng=rng)
    g.mount()
    return g


# ---------------------------------------------------------------------------
# Période de cachette
# ---------------------------------------------------------------------------
def test_hiding_period_starts_with_round(game):
    _start_round(game)

    assert game.hiding_period.timer.is_running
    assert game.hiding_period.timer.remaining == 30 * MIN
    assert game.storage.load("timer:hiding-period")["is_running"] is True


def test_hiding_period_round_trip_after_background(game, storage, notifier, clock, rng):
    _start_round(game)
    clock.advance(5 * MIN)
    game.hiding_period.timer.tick()

    # 5 minutes de plus sans ticks, puis redémarrage
    clock.advance(5 * MIN)
    restored = _restart(storage, notifier, clock, rng)

    remaining = restored.hiding_period.timer.remaining
    assert abs(remaining - 20 * MIN) <= 100
    assert restored.session.phase == GamePhase.HIDING_PERIOD
    assert "hiding_period_ended" not in notifier.kinds()


def test_expired_record_is_discarded_not_completed(game, storage, notifier, clock, rng):
    _start_round(game)
    game.hiding_period.handle_visibility_change(False)
    clock.advance(45 * MIN)

    restored = _restart(storage, notifier, clock, rng)

    assert "hiding_period_ended" not in notifier.kinds()
    assert restored.session.phase == GamePhase.HIDING_PERIOD
    assert restored.hiding_period.timer.remaining == 30 * MIN


def test_paused_record_restores_exactly(game, storage, notifier, clock, rng):
    _start_round(game)
    clock.advance(3 * MIN)
    game.session.pause_game()
    clock.advance(60 * MIN)

    restored = _restart(storage, notifier, clock, rng)

    timer = restored.hiding_period.timer
    assert timer.is_paused
    assert timer.elapsed == 3 * MIN
    restored.session.resume_game()
    clock.advance(MIN)
    assert timer.elapsed == 4 * MIN


def test_stale_phase_record_is_discarded(storage, notifier, clock, rng):
    storage.save("timer:hiding-period", {
        "elapsed": 1000, "is_running": True, "is_paused": False,
        "start_time": clock(), "phase": "hiding-period", "context": {"round_number": 1},
    })

    game = _restart(storage, notifier, clock, rng)

    assert game.session.phase == GamePhase.SETUP
    assert game.hiding_period.timer.is_running is False
    assert storage.load("timer:hiding-period") is None


def test_corrupt_timer_record_is_discarded(game, storage, notifier, clock, rng):
    _start_round(game)
    storage.put_raw("timer:hiding-period", '{"elapsed": -5, "is_running": "maybe"}')

    restored = _restart(storage, notifier, clock, rng)

    assert restored.hiding_period.timer.is_running
    assert restored.hiding_period.timer.elapsed == 0


def test_warning_fires_once_then_seeking_starts(game, clock, notifier):
    _start_round(game)

    clock.advance(25 * MIN)
    game.hiding_period.timer.tick()
    clock.advance(MIN)
    game.hiding_period.timer.tick()
    assert notifier.kinds().count("timer_warning") == 1

    clock.advance(5 * MIN)
    game.hiding_period.timer.tick()

    assert "hiding_period_ended" in notifier.kinds()
    assert game.session.phase == GamePhase.SEEKING
    assert game.hiding_duration.timer.is_running
    assert game.storage.load("timer:hiding-period") is None


def test_pause_freezes_phase_timers(game, clock):
    _start_round(game)
    clock.advance(MIN)
    game.session.pause_game()
    clock.advance(10 * MIN)

    assert game.hiding_period.timer.elapsed == MIN
    game.session.resume_game()
    assert game.hiding_period.timer.is_paused is False


# ---------------------------------------------------------------------------
# Durée de cachette
# ---------------------------------------------------------------------------
def test_duration_stops_at_round_complete_and_survives_restart(game, storage, notifier, clock, rng):
    _start_round(game)
    game.session.start_seeking()
    clock.advance(42 * MIN)
    game.session.hider_found()
    clock.advance(10 * MIN)

    assert game.hiding_duration.final_time_ms == 42 * MIN

    restored = _restart(storage, notifier, clock, rng)
    assert restored.hiding_duration.final_time_ms == 42 * MIN
    assert restored.hiding_duration.timer.is_running is False


def test_duration_paused_during_move(game, clock):
    from hideseek.models.card import CardType, PowerupType

    _start_round(game)
    game.session.start_seeking()
    clock.advance(20 * MIN)
    move = game.deck.add_card_to_hand(CardType.POWERUP, powerup_type=PowerupType.MOVE).drawn_cards[0]

    assert game.deck.play_move_powerup(move.instance_id).success
    assert game.hiding_period.timer.remaining == 10 * MIN
    clock.advance(10 * MIN)
    assert game.hiding_duration.timer.elapsed == 20 * MIN

    game.hiding_period.timer.tick()

    assert game.session.phase == GamePhase.SEEKING
    clock.advance(5 * MIN)
    assert game.hiding_duration.timer.elapsed == 25 * MIN


def test_resume_during_move_keeps_duration_paused(game, clock):
    from hideseek.models.card import CardType, PowerupType

    _start_round(game)
    game.session.start_seeking()
    move = game.deck.add_card_to_hand(CardType.POWERUP, powerup_type=PowerupType.MOVE).drawn_cards[0]
    game.deck.play_move_powerup(move.instance_id)
    game.session.pause_game()
    game.session.resume_game()

    assert game.hiding_duration.timer.is_paused
    assert game.hiding_period.timer.is_paused is False


def test_duration_survives_restart_after_entering_hiding_zone_while_paused(game, storage, notifier, clock, rng):
    _start_round(game)
    game.session.start_seeking()
    clock.advance(40 * MIN)
    game.hiding_duration.timer.tick()
    game.session.pause_game()
    game.session.enter_hiding_zone()
    clock.advance(15 * MIN)

    restored = _restart(storage, notifier, clock, rng)

    assert restored.session.phase == GamePhase.END_GAME
    assert restored.hiding_duration.timer.elapsed == 40 * MIN
    assert restored.hiding_duration.timer.is_paused
    restored.session.resume_game()
    clock.advance(MIN)
    assert restored.hiding_duration.timer.elapsed == 41 * MIN


def test_duration_survives_restart_right_after_entering_hiding_zone(game, storage, notifier, clock, rng):
    _start_round(game)
    game.session.start_seeking()
    clock.advance(40 * MIN)
    game.session.enter_hiding_zone()

    assert storage.load("timer:hiding-duration")["phase"] == "end-game"
    restored = _restart(storage, notifier, clock, rng)

    assert restored.hiding_duration.timer.elapsed == 40 * MIN
    assert restored.hiding_duration.timer.is_running


def test_duration_record_from_earlier_phase_of_round_is_kept(game, storage, notifier, clock, rng):
    _start_round(game)
    game.session.start_seeking()
    clock.advance(30 * MIN)
    game.hiding_duration.timer.tick()
    seeking_record = storage.load("timer:hiding-duration")
    game.session.enter_hiding_zone()
    # enregistrement laissé en "seeking" (process tué avant la sauvegarde suivante)
    storage.save("timer:hiding-duration", seeking_record)

    restored = _restart(storage, notifier, clock, rng)

    assert restored.session.phase == GamePhase.END_GAME
    assert restored.hiding_duration.timer.elapsed == 30 * MIN
    assert storage.load("timer:hiding-duration")["phase"] == "end-game"


def test_duration_record_from_previous_round_is_discarded(game, storage, notifier, clock, rng):
    _start_round(game)
    game.session.start_seeking()
    clock.advance(30 * MIN)
    game.hiding_duration.timer.tick()
    record = storage.load("timer:hiding-duration")
    record["context"]["round_number"] = 0
    storage.save("timer:hiding-duration", record)

    restored = _restart(storage, notifier, clock, rng)

    assert restored.hiding_duration.timer.elapsed == 0
    assert restored.hiding_duration.timer.is_running


# ---------------------------------------------------------------------------
# Réponse aux questions
# ---------------------------------------------------------------------------
def test_question_timer_lifecycle(game, clock, notifier):
    _start_round(game)
    assert game.ask_question("photo-tree").success is False
    assert game.question.begin("photo-tree").success is False

    game.session.start_seeking()
    assert game.question.begin("not-a-question").error == "Question not found"
    assert game.ask_question("photo-tree").success
    assert game.question.question_id == "photo-tree"
    assert game.question.category_id == "photo"
    assert game.question.timer.remaining == 10 * MIN

    clock.advance(9 * MIN + 1)
    game.question.timer.tick()
    clock.advance(MIN)
    game.question.timer.tick()

    messages = [t[1] for t in notifier.toasts()]
    assert "1 minute left to answer!" in messages
    assert any("Time's up" in m for m in messages)
    assert game.question.question_id is None
    assert game.storage.load("timer:question-response") is None


def test_answer_stops_timer_and_draws_for_category(game):
    _start_round(game)
    game.session.start_seeking()
    game.ask_question("matching-transit-airport")

    result = game.answer_question("matching-transit-airport", "yes")

    assert result.success
    assert (result.cards_draw, result.cards_keep) == (3, 1)
    assert len(result.drawn_cards) == 3
    assert game.deck.pending_selection.keep_count == 1
    assert game.question.timer.is_running is False
    assert game.questions.asked_questions[0].answer == "yes"


def test_next_question_waits_for_card_selection(game):
    _start_round(game)
    game.session.start_seeking()
    game.ask_question("radar-1-mile")
    drawn = game.answer_question("radar-1-mile", "no").drawn_cards

    assert game.ask_question("radar-3-miles").error == "Resolve the pending card selection first"
    game.deck.keep_cards([drawn[0].instance_id])
    assert game.ask_question("radar-3-miles").success


def test_randomize_keeps_question_countdown_running(game, clock):
    from hideseek.models.card import CardType, PowerupType

    _start_round(game)
    game.session.start_seeking()
    game.ask_question("radar-1-mile")
    clock.advance(2 * MIN)
    card = game.deck.add_card_to_hand(CardType.POWERUP, powerup_type=PowerupType.RANDOMIZE).drawn_cards[0]

    result = game.deck.play_card(card.instance_id)

    assert result.success
    assert game.question.question_id == result.question_id
    assert game.question.timer.remaining == 3 * MIN


def test_veto_clears_question_timer(game):
    from hideseek.models.card import CardType, PowerupType

    _start_round(game)
    game.session.start_seeking()
    game.ask_question("radar-1-mile")
    card = game.deck.add_card_to_hand(CardType.POWERUP, powerup_type=PowerupType.VETO).drawn_cards[0]

    assert game.deck.play_card(card.instance_id).success
    assert game.question.timer.is_running is False
    assert game.storage.load("timer:question-response") is None


def test_question_timer_rehydrates_with_category(game, storage, notifier, clock, rng):
    _start_round(game)
    game.session.start_seeking()
    game.ask_question("radar-1-mile")
    clock.advance(2 * MIN)

    restored = _restart(storage, notifier, clock, rng)

    assert restored.question.question_id == "radar-1-mile"
    assert restored.question.timer.remaining == 3 * MIN
    assert restored.questions.pending_question.question_id == "radar-1-mile"


def test_question_cleared_when_hider_found(game):
    _start_round(game)
    game.session.start_seeking()
    game.ask_question("matching-transit-airport")

    game.session.hider_found()

    assert game.question.timer.is_running is False
    assert game.question.question_id is None
    assert game.questions.pending_question is None
