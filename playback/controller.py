"""
播放控制器：当前步骤、播放/暂停、旁白结束后自动前进。

状态只有 IDLE / PLAYING / PAUSED 加上 step_index。引擎完成、失败事件与兜底定时器
都经由 handle_event 这一个入口进入；每次朗读带递增的 token，取消后旧 token 的事件一律丢弃。
"""
import logging
from enum import Enum
from typing import Any, Callable, Protocol

from api.models import SolutionData
from config import get_settings
from errors import SpeechPlaybackError

from .speech import (
    FallbackElapsed,
    NarrationFailed,
    PlaybackEvent,
    SpeechEngine,
    UnsupportedSpeechEngine,
)

logger = logging.getLogger(__name__)


class PlaybackState(str, Enum):
    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """asyncio 事件循环即满足该接口。"""

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle: ...


class PlaybackController:
    def __init__(
        self,
        engine: SpeechEngine | None = None,
        scheduler: Scheduler | None = None,
        *,
        fallback_delay: float | None = None,
        on_error: Callable[[SpeechPlaybackError], None] | None = None,
    ):
        self.engine = engine or UnsupportedSpeechEngine()
        self._scheduler = scheduler
        self.fallback_delay = (
            fallback_delay if fallback_delay is not None else get_settings().playback_fallback_delay
        )
        self.on_error = on_error

        self.solution: SolutionData | None = None
        self.state = PlaybackState.IDLE
        self.step_index = 0
        self.last_error: SpeechPlaybackError | None = None

        self._token = 0
        self._timer: TimerHandle | None = None

    # ---------- 只读视图 ----------

    @property
    def total_steps(self) -> int:
        return len(self.solution.solution_steps) if self.solution else 0

    @property
    def is_playing(self) -> bool:
        return self.state is PlaybackState.PLAYING

    @property
    def current_whiteboard_text(self) -> str | None:
        """当前步的白板内容；白板序列比步骤短时返回 None。"""
        if not self.solution or self.step_index >= len(self.solution.whiteboard_step_texts):
            return None
        return self.solution.whiteboard_step_texts[self.step_index]

    @property
    def current_narration(self) -> str | None:
        if not self.solution or self.step_index >= len(self.solution.narration_texts):
            return None
        return self.solution.narration_texts[self.step_index]

    @property
    def progress_label(self) -> str:
        if not self.total_steps:
            return "Step 0 / 0"
        return f"Step {self.step_index + 1} / {self.total_steps}"

    # ---------- 用户操作 ----------

    def load(self, solution: SolutionData) -> None:
        """载入新的解答：回到第 0 步，IDLE。"""
        self._cancel_inflight()
        self.solution = solution
        self.step_index = 0
        self.state = PlaybackState.IDLE
        self.last_error = None
        logger.info("[playback] 载入解答 步骤数=%d", self.total_steps)

    def play(self) -> None:
        if not self.total_steps or self.is_playing:
            return
        if self.step_index >= self.total_steps - 1:
            self.step_index = 0
        self.state = PlaybackState.PLAYING
        self.last_error = None
        self._narrate_current()

    def pause(self) -> None:
        if not self.is_playing:
            return
        self._cancel_inflight()
        self.state = PlaybackState.PAUSED

    def toggle(self) -> None:
        if self.is_playing:
            self.pause()
        else:
            self.play()

    def next(self) -> None:
        if not self.total_steps:
            return
        self._cancel_inflight()
        if self.step_index < self.total_steps - 1:
            self.step_index += 1
        self.state = PlaybackState.PAUSED

    def prev(self) -> None:
        if not self.total_steps:
            return
        self._cancel_inflight()
        if self.step_index > 0:
            self.step_index -= 1
        self.state = PlaybackState.PAUSED

    def seek(self, step_index: int) -> None:
        if not 0 <= step_index < self.total_steps:
            raise IndexError(f"步骤序号越界: {step_index}（共 {self.total_steps} 步）")
        self._cancel_inflight()
        self.step_index = step_index
        self.state = PlaybackState.PAUSED

    def close(self) -> None:
        """结束会话：取消一切在途朗读与定时器。"""
        self._cancel_inflight()
        self.state = PlaybackState.IDLE

    def __enter__(self) -> "PlaybackController":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ---------- 事件入口 ----------

    def handle_event(self, event: PlaybackEvent) -> None:
        if event.token != self._token:
            logger.debug("[playback] 丢弃过期事件 %s（当前 token=%d）", event, self._token)
            return
        self._timer = None

        if isinstance(event, NarrationFailed):
            self.state = PlaybackState.PAUSED
            error = SpeechPlaybackError(self.step_index, event.reason)
            self.last_error = error
            logger.error("[playback] %s", error)
            if self.on_error:
                self.on_error(error)
            return

        if not self.is_playing:
            return
        if self.step_index < self.total_steps - 1:
            self.step_index += 1
            self._narrate_current()
        else:
            self.state = PlaybackState.PAUSED
            logger.info("[playback] 已播放到最后一步")

    # ---------- 内部 ----------

    def _get_scheduler(self) -> Scheduler:
        if self._scheduler is None:
            import asyncio
            self._scheduler = asyncio.get_running_loop()
        return self._scheduler

    def _narrate_current(self) -> None:
        self._token += 1
        token = self._token
        text = (self.current_narration or "").strip()
        if self.engine.is_supported and text:
            try:
                self.engine.speak(text, token, self.handle_event)
            except Exception as e:
                self.handle_event(NarrationFailed(token, str(e)))
            return
        # 无旁白或不支持语音：定时前进，保证界面继续走
        logger.info(
            "[playback] 第 %d 步无可播放旁白，%.1f 秒后自动前进", self.step_index + 1, self.fallback_delay,
        )
        self._timer = self._get_scheduler().call_later(
            self.fallback_delay, self.handle_event, FallbackElapsed(token),
        )

    def _cancel_inflight(self) -> None:
        self._token += 1
        self.engine.cancel()
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
