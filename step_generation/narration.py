"""旁白改写：把每个技术性步骤改写成适合朗读的句子（符号展开为英文单词）。"""
import json
import logging

from pydantic import ValidationError

from config import get_settings
from errors import ModelOutputError
from llm_runner import invoke_structured

from .schemas import VoiceNarrationOutput
from .splitter import truncate_step

logger = logging.getLogger(__name__)

VOICE_NARRATION_PROMPT = """You are a math tutor creating a voice narration script.
Given the following technical math solution step:
Technical Step: {technical_step}

Rephrase this step into clear, natural-sounding language suitable for voice narration.
Expand all mathematical symbols and notations into words. For example:
- "x^2" or "x<sup>2</sup>" should become "x squared" or "x to the power of 2".
- "2/3" should become "two-thirds" or "two divided by three".
- "+" should become "plus".
- "=" should become "equals".
- Variables like 'x' or 'y' should be spoken as "ex" or "why".
Provide only the narrated text in the 'voice_narration' field."""


def generate_voice_narration(technical_step: str) -> str:
    """单步旁白：一次模型调用。步骤为空或模型未给出旁白时抛出异常。"""
    if not technical_step or not technical_step.strip():
        raise ValueError("步骤文本不能为空")
    step = truncate_step(technical_step.strip(), get_settings().step_input_max_chars)
    prompt = VOICE_NARRATION_PROMPT.format(technical_step=step)
    try:
        result: VoiceNarrationOutput = invoke_structured(prompt, VoiceNarrationOutput)
    except (ValidationError, json.JSONDecodeError) as e:
        raise ModelOutputError("模型未能返回可解析的旁白") from e
    narration = (result.voice_narration or "").strip()
    if not narration:
        raise ModelOutputError("模型未能生成旁白")
    return narration


def generate_narrations(steps: list[str]) -> list[str]:
    """
    按顺序逐步生成旁白，第 N 步一定在第 N-1 步完成后才请求。
    任一步失败即中止，异常向上抛出。
    """
    narrations: list[str] = []
    for i, step in enumerate(steps):
        logger.info("[narration] 生成步骤 %d/%d 的旁白", i + 1, len(steps))
        narrations.append(generate_voice_narration(step))
    return narrations
