"""播放控制器单测：状态迁移、取消与过期事件、兜底定时前进、旁白失败。"""
import asyncio

import pytest

from api.models import SolutionData
from errors import SpeechPlaybackError
from playback import speech
from playback.controller import PlaybackController, PlaybackState
from playback.speech import EdgeTTSSpeechEngine, NarrationEnded, NarrationFailed


class FakeEngine:
    is_supported = True

    def __init__(self):
        self.spoken = []
        self.cancel_count = 0

    def speak(self, text, token, emit):
        self.spoken.append((text, token, emit))

    def cancel(self):
        self.cancel_count += 1

    def finish(self):
        _, token, emit = self.spoken[-1]
        emit(NarrationEnded(token))

    def fail(self, reason):
        _, token, emit = self.spoken[-1]
        emit(NarrationFailed(token, reason))


class FakeHandle:
    def __init__(self):
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    def __init__(self):
        self.pending = []

    def call_later(self, delay, callback, *args):
        handle = FakeHandle()
        self.pending.append((delay, callback, args, handle))
        return handle

    def fire(self):
        delay, callback, args, handle = self.pending.pop(0)
        if not handle.cancelled:
            callback(*args)
        return delay


def _solution(narrations=None):
    steps = ["2x + 5 = 15", "2x = 10", "x = 5"]
    return SolutionData(
        problem_statement="2x + 5 = 15",
        solution_steps=steps,
        whiteboard_step_texts=list(steps),
        narration_texts=narrations if narrations is not None else [
            "two ex plus five equals fifteen", "two ex equals ten", "ex equals five",
        ],
    )


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def controller(engine, scheduler):
    c = PlaybackController(engine, scheduler, fallback_delay=1.5)
    c.load(_solution())
    return c


def test_load_starts_idle_at_first_step(controller):
    assert controller.state is PlaybackState.IDLE
    assert controller.step_index == 0
    assert controller.total_steps == 3
    assert controller.progress_label == "Step 1 / 3"
    assert controller.current_whiteboard_text == "2x + 5 = 15"


def test_play_advances_on_narration_end_and_stops_at_last(controller, engine):
    controller.play()
    assert controller.state is PlaybackState.PLAYING
    assert engine.spoken[-1][0] == "two ex plus five equals fifteen"

    engine.finish()
    assert controller.step_index == 1
    assert engine.spoken[-1][0] == "two ex equals ten"

    engine.finish()
    engine.finish()
    assert controller.step_index == 2
    assert controller.state is PlaybackState.PAUSED
    assert len(engine.spoken) == 3


def test_play_at_last_step_restarts(controller, engine):
    controller.seek(2)
    controller.play()
    assert controller.step_index == 0
    assert engine.spoken[-1][0] == "two ex plus five equals fifteen"


def test_manual_navigation_cancels_and_pauses(controller, engine):
    controller.play()
    stale_emit_step = engine.spoken[-1]
    controller.next()
    assert controller.state is PlaybackState.PAUSED
    assert controller.step_index == 1
    assert engine.cancel_count >= 1

    # 被取消的朗读结束事件不得推动步骤
    _, token, emit = stale_emit_step
    emit(NarrationEnded(token))
    assert controller.step_index == 1
    assert controller.state is PlaybackState.PAUSED


def test_prev_next_stay_within_bounds(controller):
    controller.prev()
    assert controller.step_index == 0
    controller.seek(2)
    controller.next()
    assert controller.step_index == 2


def test_seek_out_of_range_raises(controller):
    with pytest.raises(IndexError):
        controller.seek(3)
    with pytest.raises(IndexError):
        controller.seek(-1)


def test_pause_and_toggle(controller, engine):
    controller.toggle()
    assert controller.is_playing
    controller.toggle()
    assert controller.state is PlaybackState.PAUSED
    controller.toggle()
    assert controller.is_playing
    # 暂停后从当前步继续
    assert controller.step_index == 0


def test_unsupported_engine_uses_fallback_timer(scheduler):
    controller = PlaybackController(scheduler=scheduler, fallback_delay=1.5)
    controller.load(_solution())
    controller.play()
    assert scheduler.fire() == 1.5
    assert controller.step_index == 1
    scheduler.fire()
    scheduler.fire()
    assert controller.step_index == 2
    assert controller.state is PlaybackState.PAUSED
    assert scheduler.pending == []


def test_missing_narration_falls_back_to_timer(engine, scheduler):
    controller = PlaybackController(engine, scheduler, fallback_delay=1.0)
    controller.load(_solution(narrations=["only the first"]))
    controller.play()
    engine.finish()
    assert controller.step_index == 1
    assert len(engine.spoken) == 1
    assert len(scheduler.pending) == 1
    scheduler.fire()
    assert controller.step_index == 2


def test_pause_cancels_fallback_timer(scheduler):
    controller = PlaybackController(scheduler=scheduler)
    controller.load(_solution())
    controller.play()
    controller.pause()
    scheduler.fire()
    assert controller.step_index == 0
    assert controller.state is PlaybackState.PAUSED


def test_narration_error_pauses_and_reports(engine, scheduler):
    errors = []
    controller = PlaybackController(engine, scheduler, on_error=errors.append)
    controller.load(_solution())
    controller.play()
    engine.finish()
    engine.fail("synthesis-failed")

    assert controller.state is PlaybackState.PAUSED
    assert controller.step_index == 1
    assert len(errors) == 1
    assert isinstance(errors[0], SpeechPlaybackError)
    assert errors[0].step_index == 1
    assert errors[0].reason == "synthesis-failed"
    assert controller.last_error is errors[0]


def test_engine_raising_on_speak_is_reported(scheduler):
    class RaisingEngine(FakeEngine):
        def speak(self, text, token, emit):
            raise RuntimeError("audio device busy")

    errors = []
    controller = PlaybackController(RaisingEngine(), scheduler, on_error=errors.append)
    controller.load(_solution())
    controller.play()
    assert controller.state is PlaybackState.PAUSED
    assert errors[0].reason == "audio device busy"


def test_close_cancels_inflight(controller, engine):
    with controller:
        controller.play()
    assert controller.state is PlaybackState.IDLE
    engine.finish()
    assert controller.step_index == 0


def test_empty_controller_ignores_controls(scheduler):
    controller = PlaybackController(scheduler=scheduler)
    controller.play()
    controller.next()
    assert controller.state is PlaybackState.IDLE
    assert controller.progress_label == "Step 0 / 0"


def test_asyncio_loop_as_scheduler():
    async def run():
        controller = PlaybackController(fallback_delay=0.01)
        controller.load(_solution(narrations=[]))
        controller.play()
        await asyncio.sleep(0.2)
        return controller

    controller = asyncio.run(run())
    assert controller.step_index == 2
    assert controller.state is PlaybackState.PAUSED


def test_edge_tts_engine_emits_end_after_audio(monkeypatch, tmp_path):
    async def fake_synthesize(text, path, *, voice=None):
        return 0.01

    monkeypatch.setattr(speech, "synthesize_narration_async", fake_synthesize)
    events = []

    async def run():
        engine = EdgeTTSSpeechEngine(tmp_path)
        engine.speak("ex equals five", 7, events.append)
        await asyncio.sleep(0.1)

    asyncio.run(run())
    assert events == [NarrationEnded(7)]


def test_edge_tts_engine_cancel_suppresses_events(monkeypatch, tmp_path):
    async def fake_synthesize(text, path, *, voice=None):
        return 0.3

    monkeypatch.setattr(speech, "synthesize_narration_async", fake_synthesize)
    events = []

    async def run():
        engine = EdgeTTSSpeechEngine(tmp_path)
        engine.speak("ex equals five", 1, events.append)
        await asyncio.sleep(0.05)
        engine.cancel()
        await asyncio.sleep(0.4)

    asyncio.run(run())
    assert events == []


def test_edge_tts_engine_reports_failure(monkeypatch, tmp_path):
    async def fake_synthesize(text, path, *, voice=None):
        raise RuntimeError("network unreachable")

    monkeypatch.setattr(speech, "synthesize_narration_async", fake_synthesize)
    events = []

    async def run():
        engine = EdgeTTSSpeechEngine(tmp_path)
        engine.speak("ex", 3, events.append)
        await asyncio.sleep(0.05)

    asyncio.run(run())
    assert events == [NarrationFailed(3, "network unreachable")]


async def _write_text_as_audio(text, path, *, voice=None):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return 0.05


def test_edge_tts_engines_sharing_a_directory_keep_their_own_audio(monkeypatch, tmp_path):
    monkeypatch.setattr(speech, "synthesize_narration_async", _write_text_as_audio)
    heard = {"a": [], "b": []}
    events = []

    def listener(name):
        def on_audio(token, path):
            heard[name].append((token, path, path.read_text()))
        return on_audio

    async def run():
        first = EdgeTTSSpeechEngine(tmp_path, on_audio=listener("a"))
        second = EdgeTTSSpeechEngine(tmp_path, on_audio=listener("b"))
        # 两个会话用同一个 token，文件也不能冲突
        first.speak("two ex equals ten", 1, events.append)
        second.speak("ex equals five", 1, events.append)
        await asyncio.sleep(0.2)

    asyncio.run(run())
    (_, path_a, content_a), = heard["a"]
    (_, path_b, content_b), = heard["b"]
    assert content_a == "two ex equals ten"
    assert content_b == "ex equals five"
    assert path_a != path_b
    assert events == [NarrationEnded(1), NarrationEnded(1)]
    assert list(tmp_path.iterdir()) == []


def test_edge_tts_engine_cancel_removes_audio_file(monkeypatch, tmp_path):
    monkeypatch.setattr(speech, "synthesize_narration_async", _write_text_as_audio)
    paths = []

    async def run():
        engine = EdgeTTSSpeechEngine(tmp_path, on_audio=lambda token, path: paths.append(path))
        engine.speak("ex equals five", 4, lambda event: None)
        await asyncio.sleep(0.01)
        assert paths and paths[0].exists()
        engine.cancel()
        await asyncio.sleep(0.01)

    asyncio.run(run())
    assert len(paths) == 1
    assert not paths[0].exists()


def test_short_whiteboard_list_yields_none_past_its_end(engine, scheduler):
    solution = _solution()
    solution.whiteboard_step_texts = ["2x + 5 = 15", "2x = 10"]
    controller = PlaybackController(engine, scheduler, fallback_delay=1.5)
    controller.load(solution)

    assert controller.current_whiteboard_text == "2x + 5 = 15"
    controller.seek(1)
    assert controller.current_whiteboard_text == "2x = 10"
    controller.seek(2)
    assert controller.current_whiteboard_text is None
    assert controller.current_narration == "ex equals five"
    assert controller.progress_label == "Step 3 / 3"

    controller.load(SolutionData(
        problem_statement="x = 1", solution_steps=["x = 1"], whiteboard_step_texts=[], narration_texts=["ex equals one"],
    ))
    assert controller.current_whiteboard_text is None
