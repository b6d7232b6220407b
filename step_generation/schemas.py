"""步骤生成阶段：旁白改写的输出 schema。"""
from pydantic import BaseModel, Field


class VoiceNarrationOutput(BaseModel):
    voice_narration: str = Field(
        default="",
        description=(
            'The voice narration explaining the solution step, with mathematical symbols '
            'expanded into spoken words (e.g., "x squared", "two thirds").'
        ),
    )
