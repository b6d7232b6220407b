"""旁白播放引擎：约定 speak/cancel 接口与完成、失败事件。引擎通过 emit 把事件送回播放控制器。"""
import asyncio
import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Protocol

from asset_generation.tts import synthesize_narration_async
from config import get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NarrationEnded:
    token: int


@dataclass(frozen=True)
class NarrationFailed:
    token: int
    reason: str


@dataclass(frozen=True)
class FallbackElapsed:
    """无旁白或引擎不支持时，定时前进到期。"""

    token: int


PlaybackEvent = NarrationEnded | NarrationFailed | FallbackElapsed
EventSink = Callable[[PlaybackEvent], None]


class SpeechEngine(Protocol):
    is_supported: bool

    def speak(self, text: str, token: int, emit: EventSink) -> None:
        """开始朗读；结束时 emit(NarrationEnded(token))，失败时 emit(NarrationFailed(token, reason))。"""

    def cancel(self) -> None:
        """立即停止当前朗读，被取消的朗读不再发出任何事件。"""


class UnsupportedSpeechEngine:
    """当前运行环境没有语音能力，播放控制器会改用定时前进。"""

    is_supported = False

    def speak(self, text: str, token: int, emit: EventSink) -> None:
        emit(NarrationFailed(token, "当前环境不支持语音合成"))

    def cancel(self) -> None:
        pass


class EdgeTTSSpeechEngine:
    """
    用 edge-tts 合成旁白，按音频时长计时后发出结束事件。需在 asyncio 事件循环中使用。
    合成好的 MP3 通过 on_audio(token, path) 交给调用方播放；文件名带引擎实例前缀，
    多个会话共用同一输出目录也不会互相覆盖。朗读结束、失败或被取消后文件即删除。
    """

    is_supported = True

    def __init__(
        self,
        output_dir: str | Path | None = None,
        *,
        voice: str | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
        on_audio: Callable[[int, Path], None] | None = None,
    ):
        self.output_dir = Path(output_dir or get_settings().audio_output_dir)
        self.voice = voice
        self.on_audio = on_audio
        self._loop = loop
        self._task: asyncio.Task | None = None
        self._prefix = uuid.uuid4().hex

    def audio_path(self, token: int) -> Path:
        return self.output_dir / f"narration_{self._prefix}_{token}.mp3"

    def speak(self, text: str, token: int, emit: EventSink) -> None:
        self.cancel()
        loop = self._loop or asyncio.get_running_loop()
        self._task = loop.create_task(self._run(text, token, emit))

    async def _run(self, text: str, token: int, emit: EventSink) -> None:
        path = self.audio_path(token)
        try:
            duration = await synthesize_narration_async(text, path, voice=self.voice)
            if self.on_audio is not None:
                self.on_audio(token, path)
            await asyncio.sleep(duration)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("[playback] 旁白合成失败 token=%d: %s", token, e)
            emit(NarrationFailed(token, str(e)))
            return
        finally:
            path.unlink(missing_ok=True)
        emit(NarrationEnded(token))

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
