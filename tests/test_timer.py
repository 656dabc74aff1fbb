from hideseek.services.timer import PersistentTimer


def _countdown(clock, initial=30 * 60_000, **kw):
    return PersistentTimer(countdown=True, initial_time_ms=initial, clock=clock, **kw)


def test_elapsed_is_computed_from_wall_clock(clock):
    timer = PersistentTimer(clock=clock)
    timer.start()

    clock.advance(12_345)

    # aucun tick n'a été exécuté
    assert timer.elapsed == 12_345
    assert timer.remaining is None


def test_countdown_remaining(clock):
    timer = _countdown(clock)
    timer.start()
    clock.advance(5 * 60_000)

    assert timer.remaining == 25 * 60_000


def test_pause_freezes_and_resume_reanchors(clock):
    timer = PersistentTimer(clock=clock)
    timer.start()
    clock.advance(1000)
    timer.pause()
    clock.advance(60_000)

    assert timer.elapsed == 1000
    assert timer.is_paused

    timer.resume()
    clock.advance(500)
    assert timer.elapsed == 1500


def test_stop_keeps_value_and_reset_zeroes(clock):
    timer = PersistentTimer(clock=clock)
    timer.start()
    clock.advance(4000)
    timer.stop()
    clock.advance(4000)

    assert timer.elapsed == 4000
    assert timer.is_running is False

    timer.reset()
    assert timer.elapsed == 0


def test_start_from_preset_elapsed(clock):
    timer = _countdown(clock, initial=10_000)
    timer.start(initial_elapsed_ms=4000)

    assert timer.remaining == 6000


def test_countdown_completes_once_and_clamps(clock):
    completions = []
    ticks = []
    timer = _countdown(clock, initial=10_000, on_tick=ticks.append, on_complete=lambda: completions.append(1))
    timer.start()

    clock.advance(4000)
    timer.tick()
    clock.advance(60_000)
    timer.tick()
    timer.tick()

    assert completions == [1]
    assert ticks == [4000, 10_000]
    assert timer.remaining == 0
    assert timer.is_running is False


def test_paused_timer_does_not_tick(clock):
    ticks = []
    timer = PersistentTimer(clock=clock, on_tick=ticks.append)
    timer.start()
    timer.pause()
    clock.advance(1000)
    timer.tick()

    assert ticks == []


def test_visibility_return_recomputes_from_anchor(clock):
    ticks = []
    timer = _countdown(clock, on_tick=ticks.append)
    timer.start()

    # arrière-plan : aucun tick pendant 7 minutes
    clock.advance(7 * 60_000)
    timer.handle_visibility_change(True)

    assert ticks == [7 * 60_000]
    assert timer.remaining == 23 * 60_000


def test_visibility_return_past_deadline_completes(clock):
    completions = []
    timer = _countdown(clock, initial=1000, on_complete=lambda: completions.append(1))
    timer.start()
    clock.advance(5000)

    timer.handle_visibility_change(True)

    assert completions == [1]
    assert timer.remaining == 0


def test_restore_paused_keeps_elapsed(clock):
    timer = _countdown(clock)
    timer.restore(90_000, paused=True)
    clock.advance(10_000)

    assert timer.is_running and timer.is_paused
    assert timer.elapsed == 90_000
