"""题目分析阶段：模型输出 schema 与分析结果。"""
from pydantic import BaseModel, Field


class AnalyzeAndSolveOutput(BaseModel):
    """LLM 题目分析输出。字段缺省为空串，由分析器判断是否可用。"""

    analyzed_problem: str = Field(
        default="",
        description="The math problem that was identified and solved, either from the text input or extracted from the image.",
    )
    solution: str = Field(
        default="",
        description=(
            "A step-by-step solution to the math problem, one step per line. "
            "Use HTML <sup> tags for exponents (e.g., x<sup>2</sup>). For fractions, use a/b format."
        ),
    )


class AnalysisResult(BaseModel):
    analyzed_problem: str = Field(..., min_length=1, description="题目陈述（文本输入时即原文）")
    solution: str = Field(..., description="多行解答原文")
