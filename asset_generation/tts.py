"""旁白 TTS：把一段旁白合成为 MP3 并返回时长（秒），供没有本地语音合成能力的前端播放。"""
import asyncio
import logging
import subprocess
import warnings
from pathlib import Path

from config import get_settings

logger = logging.getLogger(__name__)


def _duration_via_ffprobe(path: Path) -> float | None:
    try:
        result = subprocess.run(
            ["ffprobe", "-v", "error", "-show_entries", "format=duration", "-of", "default=noprint_wrappers=1:nokey=1", str(path)],
            capture_output=True,
            text=True,
            timeout=30,
        )
        if result.returncode == 0 and result.stdout.strip():
            return float(result.stdout.strip())
    except FileNotFoundError:
        warnings.warn(
            "未找到 ffprobe（请安装 FFmpeg 以获得准确语音时长）。当前使用默认时长。",
            UserWarning,
            stacklevel=2,
        )
    except subprocess.TimeoutExpired:
        warnings.warn("ffprobe 获取时长超时，使用默认时长。", UserWarning, stacklevel=2)
    return None


def measure_audio_duration(path: str | Path) -> float:
    """优先用 pydub 读取时长，失败时退回 ffprobe，再退回配置的默认时长。"""
    path = Path(path)
    default_sec = get_settings().default_narration_seconds
    try:
        from pydub import AudioSegment
        seg = AudioSegment.from_file(str(path))
        return len(seg) / 1000.0
    except ImportError:
        return _duration_via_ffprobe(path) or default_sec
    except (FileNotFoundError, OSError):
        # pydub 内部调用 ffprobe，未安装 ffmpeg 时会报错
        return _duration_via_ffprobe(path) or default_sec


async def synthesize_narration_async(
    text: str,
    output_path: str | Path,
    *,
    voice: str | None = None,
) -> float:
    """异步：合成旁白音频并返回时长（秒）。未传 voice 时从配置读取。"""
    if not text or not text.strip():
        raise ValueError("旁白文本不能为空")
    import edge_tts

    out = Path(output_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    if voice is None:
        voice = get_settings().tts_voice
    logger.info("[TTS] 合成旁白 voice=%s text_len=%d -> %s", voice, len(text), out)
    communicate = edge_tts.Communicate(text.strip(), voice)
    await communicate.save(str(out))
    # pydub/ffprobe 都是阻塞调用，放到线程里执行
    return await asyncio.to_thread(measure_audio_duration, out)


def synthesize_narration(text: str, output_path: str | Path, *, voice: str | None = None) -> float:
    """同步封装：合成旁白音频并返回时长（秒）。"""
    return asyncio.run(synthesize_narration_async(text, output_path, voice=voice))
