"""解题编排：题目分析 → 步骤拆分 → 白板呈现 → 逐步旁白 → 组装结果。任一阶段失败即整体失败，不返回部分结果。"""
import logging
import warnings
from typing import Callable

from errors import CardinalityMismatchWarning, SolveError
from problem_analysis.analyzer import analyze_and_solve
from step_generation.narration import generate_narrations
from step_generation.presentation import prepare_whiteboard_steps
from step_generation.splitter import split_solution_steps

from api.models import SolutionData

logger = logging.getLogger(__name__)

# 流水线阶段名称，供进度回调与日志
PIPELINE_STEPS = [
    "题目分析",
    "步骤拆分",
    "白板呈现",
    "语音旁白",
]


def solve_problem(
    problem: str | None = None,
    image_data_uri: str | None = None,
    *,
    on_step_start: Callable[[int, str], None] | None = None,
) -> SolutionData:
    """
    依次执行四个阶段并组装 SolutionData。

    各阶段严格顺序执行，旁白逐步请求（第 N 步在第 N-1 步之后）。
    任何异常都会记录日志并以 SolveError("解题失败: ...") 抛出，原始异常见 SolveError.cause。
    三个序列长度不一致时只发出 CardinalityMismatchWarning，结果照常返回。
    """

    def _step(i: int, name: str) -> None:
        if on_step_start:
            on_step_start(i, name)
        logger.info("[solve] 阶段%d/%d %s…", i + 1, len(PIPELINE_STEPS), name)

    try:
        # ---------- 阶段 0：题目分析 ----------
        _step(0, PIPELINE_STEPS[0])
        analysis = analyze_and_solve(problem, image_data_uri)
        problem_statement = analysis.analyzed_problem

        # ---------- 阶段 1：步骤拆分 ----------
        _step(1, PIPELINE_STEPS[1])
        solution_steps = split_solution_steps(analysis.solution)
        logger.info("[solve] 拆分完成 步骤数=%d", len(solution_steps))

        # ---------- 阶段 2：白板呈现 ----------
        _step(2, PIPELINE_STEPS[2])
        whiteboard_step_texts = prepare_whiteboard_steps(problem_statement, solution_steps)

        # ---------- 阶段 3：语音旁白 ----------
        _step(3, PIPELINE_STEPS[3])
        narration_texts = generate_narrations(solution_steps)
    except Exception as e:
        logger.exception("[solve] 解题失败: %s", e)
        raise SolveError(f"解题失败: {e}", cause=e) from e

    if not (len(whiteboard_step_texts) == len(solution_steps) == len(narration_texts)):
        logger.warning(
            "[solve] 生成内容数量不一致 steps=%d whiteboard=%d narrations=%d",
            len(solution_steps), len(whiteboard_step_texts), len(narration_texts),
        )
        warnings.warn(
            f"生成内容数量不一致: steps={len(solution_steps)} "
            f"whiteboard={len(whiteboard_step_texts)} narrations={len(narration_texts)}",
            CardinalityMismatchWarning,
            stacklevel=2,
        )

    logger.info("[solve] 解题完成 步骤数=%d", len(solution_steps))
    return SolutionData(
        problem_statement=problem_statement,
        solution_steps=solution_steps,
        whiteboard_step_texts=whiteboard_step_texts,
        narration_texts=narration_texts,
    )
