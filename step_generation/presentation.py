"""
白板呈现：为每个步骤准备白板上展示的内容。

  text  — 步骤文本原样上白板（默认）
  image — 每步调用一次图像模型，返回 data URI；任一步失败则整批失败，不重试
"""
import logging
from typing import Literal

from config import get_settings
from errors import ModelOutputError
from llm_runner import generate_image_data_uri

from .splitter import truncate_step

logger = logging.getLogger(__name__)

WHITEBOARD_IMAGE_PROMPT = (
    'Create a clear, whiteboard-style drawing that visually represents the following math solution step: "{step}"'
)


def prepare_whiteboard_steps(
    problem: str,
    steps: list[str],
    *,
    mode: Literal["text", "image"] | None = None,
) -> list[str]:
    """返回与 steps 一一对应、顺序一致的白板内容。mode 未传时读取配置 whiteboard_mode。"""
    if mode is None:
        mode = get_settings().whiteboard_mode
    if mode == "text":
        return list(steps)
    if mode == "image":
        return _render_whiteboard_images(problem, steps)
    raise ValueError(f"未知的白板模式: {mode}")


def _render_whiteboard_images(problem: str, steps: list[str]) -> list[str]:
    max_chars = get_settings().step_input_max_chars
    logger.info("[whiteboard] 逐步生成白板图，步骤数=%d 题目=%s", len(steps), problem[:50])
    images: list[str] = []
    for i, step in enumerate(steps):
        prompt = WHITEBOARD_IMAGE_PROMPT.format(step=truncate_step(step, max_chars))
        image = generate_image_data_uri(prompt)
        if not image:
            logger.error("[whiteboard] 第 %d 步图像模型未返回图片 step=%s", i + 1, step[:80])
            raise ModelOutputError(f"第 {i + 1} 步白板图生成失败：图像模型未返回有效图片")
        images.append(image)
        logger.info("[whiteboard] 步骤 %d/%d 白板图完成", i + 1, len(steps))
    return images
