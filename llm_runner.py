"""基于 LangChain 的可复用 LLM 调用，供题目分析、旁白改写共用；白板图走 OpenAI 图像接口。文字与图片题目统一走结构化输出，仅请求时区分 content 类型。"""
import json
import logging
import re
from typing import TypeVar

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage
from langchain_openai import ChatOpenAI
from openai import OpenAI
from pydantic import BaseModel

from config import get_settings

logger = logging.getLogger(__name__)

# 日志中 prompt/response 最大展示长度，超出截断
_LOG_CONTENT_MAX = 2000

T = TypeVar("T", bound=BaseModel)


def _truncate_for_log(s: str, max_len: int = _LOG_CONTENT_MAX) -> str:
    if len(s) <= max_len:
        return s
    return s[:max_len] + f"... [截断，共 {len(s)} 字]"


def _extract_json_from_text(text: str) -> str:
    """
    从 LLM 返回的文本中提取 JSON 字符串。

    1. 优先提取 ```json ... ``` 中的内容
    2. 否则遍历所有 ```...``` 块，返回第一个能解析为合法 JSON 的块
    3. 若无代码块或均非 JSON，尝试第一个 { 到最后一个 } 之间的内容
    4. 都失败则返回原文本（交给调用方报错）
    """
    json_block = re.search(r"```json\s*\n?(.*?)\n?\s*```", text, re.DOTALL)
    if json_block:
        candidate = json_block.group(1).strip()
        try:
            json.loads(candidate)
            return candidate
        except json.JSONDecodeError:
            pass

    for match in re.finditer(r"```(?:\w+)?\s*\n?(.*?)\n?\s*```", text, re.DOTALL):
        candidate = match.group(1).strip()
        if not candidate:
            continue
        try:
            json.loads(candidate)
            return candidate
        except json.JSONDecodeError:
            continue

    first_brace = text.find("{")
    last_brace = text.rfind("}")
    if first_brace != -1 and last_brace != -1 and last_brace > first_brace:
        candidate = text[first_brace : last_brace + 1]
        try:
            json.loads(candidate)
            return candidate
        except json.JSONDecodeError:
            pass

    return text


def _invoke_and_parse(
    llm: BaseChatModel,
    content: str | list,
    schema: type[T],
) -> T:
    """
    普通调用 LLM 并手动提取 JSON 解析为 Pydantic 模型。

    在 prompt 末尾追加 JSON 格式约束；即便模型返回 Markdown 代码块包裹的 JSON，
    也能通过 _extract_json_from_text 提取。解析失败时抛出 pydantic.ValidationError。
    """
    json_hint = (
        "\n\n**IMPORTANT: output pure JSON only, without Markdown code fences, comments or any other text.**"
        f"\nJSON Schema: {json.dumps(schema.model_json_schema(), ensure_ascii=False)}"
    )
    if isinstance(content, list):
        # 多模态：在 text 部分追加提示
        patched_content = []
        for item in content:
            if isinstance(item, dict) and item.get("type") == "text":
                patched_content.append({**item, "text": item["text"] + json_hint})
            else:
                patched_content.append(item)
        msg = llm.invoke([HumanMessage(content=patched_content)])
    else:
        msg = llm.invoke([HumanMessage(content=content + json_hint)])

    raw_content = msg.content if hasattr(msg, "content") else str(msg)
    logger.info("[LLM] 调用完成, raw_len=%d", len(raw_content))
    logger.debug("[LLM] raw response: %s", _truncate_for_log(raw_content))

    extracted = _extract_json_from_text(raw_content)
    logger.info("[LLM] 提取 JSON, extracted_len=%d", len(extracted))
    return schema.model_validate_json(extracted)


def get_chat_model(
    *,
    model: str | None = None,
    temperature: float | None = None,
    max_tokens: int | None = None,
    timeout: float | None = None,
) -> BaseChatModel:
    """返回配置好的文本 ChatModel（OpenAI），参数未传时使用配置文件中的文本模型配置。"""
    s = get_settings()
    kwargs = {
        "model": model or s.llm_model,
        "temperature": temperature if temperature is not None else s.llm_temperature,
        "api_key": s.openai_api_key or None,
        "request_timeout": timeout if timeout is not None else s.llm_request_timeout,
    }
    if s.openai_base_url:
        kwargs["base_url"] = s.openai_base_url
    if max_tokens is not None or s.llm_max_tokens is not None:
        kwargs["max_tokens"] = max_tokens if max_tokens is not None else s.llm_max_tokens
    return ChatOpenAI(**kwargs)


def get_vision_model(
    *,
    model: str | None = None,
    temperature: float | None = None,
    max_tokens: int | None = None,
    timeout: float | None = None,
) -> BaseChatModel:
    """
    返回配置好的视觉 ChatModel（OpenAI），用于图片题目。

    优先使用 vision_* 配置，未设置时自动回退到文本模型的对应配置。
    调用方传入的参数优先级最高。
    """
    s = get_settings()
    kwargs = {
        "model": model or s.vision_model or s.llm_model,
        "temperature": temperature if temperature is not None else (
            s.vision_temperature if s.vision_temperature is not None else s.llm_temperature
        ),
        "api_key": (s.vision_api_key or s.openai_api_key) or None,
        "request_timeout": timeout if timeout is not None else (
            s.vision_request_timeout if s.vision_request_timeout is not None else s.llm_request_timeout
        ),
    }
    base_url = s.vision_base_url or s.openai_base_url
    if base_url:
        kwargs["base_url"] = base_url
    effective_max_tokens = max_tokens if max_tokens is not None else (
        s.vision_max_tokens if s.vision_max_tokens is not None else s.llm_max_tokens
    )
    if effective_max_tokens is not None:
        kwargs["max_tokens"] = effective_max_tokens
    return ChatOpenAI(**kwargs)


def invoke_structured(
    prompt: str,
    schema: type[T],
    *,
    model: str | None = None,
    timeout: float | None = None,
) -> T:
    """调用文本 LLM 并解析为 Pydantic 模型。供题目分析、旁白改写复用。"""
    logger.info("[LLM] invoke_structured 请求 schema=%s prompt_len=%d", schema.__name__, len(prompt))
    logger.info("[LLM] prompt: %s", _truncate_for_log(prompt))
    llm = get_chat_model(model=model, timeout=timeout)
    result = _invoke_and_parse(llm, prompt, schema)
    out_str = result.model_dump_json()
    logger.info("[LLM] invoke_structured 响应 schema=%s response_len=%d", schema.__name__, len(out_str))
    logger.info("[LLM] response: %s", _truncate_for_log(out_str))
    return result


def invoke_multimodal_structured(
    prompt: str,
    schema: type[T],
    *,
    image_data_uri: str | None = None,
    model: str | None = None,
    timeout: float | None = None,
) -> T:
    """
    多模态结构化输出：同时传入文本提示与可选图片（data URI），返回 Pydantic 模型。
    有图片时使用视觉模型，content 为 [text, image_url]；否则退化为纯文本结构化调用。
    """
    logger.info(
        "[LLM] invoke_multimodal_structured 请求 schema=%s prompt_len=%d has_image=%s",
        schema.__name__, len(prompt), bool(image_data_uri),
    )
    logger.info("[LLM] prompt: %s", _truncate_for_log(prompt))
    if image_data_uri:
        llm = get_vision_model(model=model, timeout=timeout)
        content: str | list = [
            {"type": "text", "text": prompt},
            {"type": "image_url", "image_url": {"url": image_data_uri}},
        ]
    else:
        llm = get_chat_model(model=model, timeout=timeout)
        content = prompt
    result = _invoke_and_parse(llm, content, schema)
    out_str = result.model_dump_json()
    logger.info("[LLM] invoke_multimodal_structured 响应 schema=%s response_len=%d", schema.__name__, len(out_str))
    logger.info("[LLM] response: %s", _truncate_for_log(out_str))
    return result


def generate_image_data_uri(prompt: str, *, model: str | None = None, size: str | None = None) -> str | None:
    """
    调用图像模型生成一张图，返回 data URI（或服务端给出的 URL）。
    模型未返回图片时返回 None，由调用方决定是否报错。
    """
    s = get_settings()
    client_kwargs = {"api_key": s.openai_api_key or None, "timeout": s.llm_request_timeout}
    if s.openai_base_url:
        client_kwargs["base_url"] = s.openai_base_url
    client = OpenAI(**client_kwargs)

    logger.info("[LLM] generate_image 请求 model=%s prompt_len=%d", model or s.image_model, len(prompt))
    logger.info("[LLM] prompt: %s", _truncate_for_log(prompt))
    response = client.images.generate(
        model=model or s.image_model,
        prompt=prompt,
        size=size or s.image_size,
        response_format="b64_json",
        n=1,
    )
    if not response.data:
        logger.warning("[LLM] generate_image 未返回任何图片")
        return None
    image = response.data[0]
    if image.b64_json:
        return f"data:image/png;base64,{image.b64_json}"
    return image.url or None
