"""从环境变量或 .env 加载配置（LLM、视觉模型、白板呈现、图库存储、播放、TTS）。"""
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ---------- 文本模型（LLM）配置 ----------
    openai_api_key: str = ""
    """OpenAI API Key（或兼容接口的 Key），必填。"""
    openai_base_url: str | None = None
    """API 基础 URL，可选。用于代理或自定义端点。"""
    llm_model: str = "gpt-4o"
    """文本模型名称，用于题目分析、旁白改写。"""
    llm_temperature: float = 0.2
    llm_max_tokens: int | None = None
    llm_request_timeout: float = 120.0
    """单次请求超时秒数。"""

    # ---------- 视觉模型（Vision LLM）配置 ----------
    # 未配置时自动回退到上方文本模型的对应配置
    vision_api_key: str | None = None
    vision_base_url: str | None = None
    vision_model: str | None = None
    """视觉模型名称，用于图片题目识别与求解。不设则使用 llm_model。"""
    vision_temperature: float | None = None
    vision_max_tokens: int | None = None
    vision_request_timeout: float | None = None

    # ---------- 白板呈现 ----------
    whiteboard_mode: Literal["text", "image"] = "text"
    """text：步骤文本原样上白板；image：每步调用图像模型生成白板图（更慢、更易失败）。"""
    image_model: str = "dall-e-3"
    image_size: str = "1024x1024"

    # 每步送入下游模型（旁白、白板图）前的最大字符数，白板展示仍用完整文本
    step_input_max_chars: int = 1000

    # ---------- 图库 ----------
    gallery_db_path: str = "data/gallery.db"
    gallery_key: str = "stepwiseSolverGallery"
    gallery_max_items: int = 50

    # ---------- 播放 ----------
    playback_fallback_delay: float = 1.5
    """无旁白或不支持语音时，自动前进到下一步的等待秒数。"""

    # TTS（edge-tts 用 voice 名）
    tts_voice: str = "en-US-AriaNeural"
    default_narration_seconds: float = 2.0
    """无法测得音频时长时的兜底秒数。"""
    audio_output_dir: str = "output/audio"


def get_settings() -> Settings:
    return Settings()
