"""题目图片的 data URI 编解码与校验。"""
import base64
import binascii
import re

from errors import InputValidationError

# 允许的题目图片类型
ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/png", "image/gif", "image/webp"}

_DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.+)$", re.DOTALL)


def image_to_data_uri(image_bytes: bytes, mime_type: str = "image/jpeg") -> str:
    """将上传的图片二进制内容转为 data URI。"""
    if not image_bytes:
        raise InputValidationError("图片内容为空")
    if mime_type not in ALLOWED_IMAGE_TYPES:
        raise InputValidationError(f"不支持的图片类型 {mime_type}，仅支持: {', '.join(sorted(ALLOWED_IMAGE_TYPES))}")
    b64 = base64.standard_b64encode(image_bytes).decode("ascii")
    return f"data:{mime_type};base64,{b64}"


def parse_image_data_uri(data_uri: str) -> tuple[str, str]:
    """
    校验并拆分 data URI。
    :return: (mime_type, base64 内容)
    格式不合法、类型不支持或 base64 无法解码时抛出 InputValidationError。
    """
    match = _DATA_URI_RE.match((data_uri or "").strip())
    if not match:
        raise InputValidationError("图片需为 data:<mimetype>;base64,<data> 格式的 data URI")
    mime_type = match.group("mime").lower()
    if mime_type not in ALLOWED_IMAGE_TYPES:
        raise InputValidationError(f"不支持的图片类型 {mime_type}，仅支持: {', '.join(sorted(ALLOWED_IMAGE_TYPES))}")
    payload = match.group("data").strip()
    try:
        base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InputValidationError("图片 base64 内容无法解码") from e
    return mime_type, payload
