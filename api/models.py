"""请求/响应模型：解题输入、解题结果、图库记录。JSON 字段为 camelCase，与持久化格式一致。"""
from pydantic import BaseModel, ConfigDict, Field


class SolveRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    problem: str | None = Field(None, description="数学题目文本，与图片至少提供一个")
    image_data_uri: str | None = Field(
        None,
        alias="imageDataUri",
        description="题目图片，data:<mimetype>;base64,<data> 格式",
    )


class SolutionData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    problem_statement: str = Field(..., alias="problemStatement")
    solution_steps: list[str] = Field(default_factory=list, alias="solutionSteps")
    whiteboard_step_texts: list[str] = Field(
        default_factory=list,
        alias="whiteboardStepTexts",
        description="白板内容，与 solutionSteps 一一对应（文本或图片 data URI）",
    )
    narration_texts: list[str] = Field(default_factory=list, alias="narrationTexts")


class SavedProblem(SolutionData):
    id: str = Field(..., description="保存时刻的毫秒时间戳")
    created_at: str = Field(..., alias="createdAt", description="ISO-8601 保存时间")


class NarrationAudioRequest(BaseModel):
    text: str = Field(..., min_length=1, description="要朗读的旁白文本")
