"""题目理解与求解：analyze_and_solve(problem, image_data_uri)。支持文本、图片或两者同时提供。"""
import json
import logging

from pydantic import ValidationError

from errors import InputValidationError, ModelOutputError
from llm_runner import invoke_multimodal_structured, invoke_structured

from .image_data import parse_image_data_uri
from .schemas import AnalysisResult, AnalyzeAndSolveOutput

logger = logging.getLogger(__name__)

_SOLUTION_FORMAT = """Then, provide a detailed, step-by-step solution to the identified math problem in the 'solution' field.
Format the solution for clear display:
- Use HTML <sup> tags for exponents (e.g., x<sup>2</sup> for x squared).
- For fractions, use the format a/b (e.g., 1/2 for one half).
- Ensure each step is on a new line."""

ANALYZE_TEXT_PROMPT = """You are an expert math tutor. Your goal is to help students understand how to solve math problems step by step.

The problem has been provided as text:
Problem: {problem_text}

""" + _SOLUTION_FORMAT + """

The 'analyzed_problem' field should contain the original problem text."""

ANALYZE_IMAGE_PROMPT = """You are an expert math tutor. Your goal is to help students understand how to solve math problems step by step.

The problem has been provided as an image. Analyze the attached image to identify the math problem.
First, clearly state the math problem you identified from the image in the 'analyzed_problem' field.

""" + _SOLUTION_FORMAT


def analyze_and_solve(
    problem: str | None = None,
    image_data_uri: str | None = None,
) -> AnalysisResult:
    """
    校验输入后调用一次 LLM，返回题目陈述与多行解答。

    - 文本与图片都没有：在调用模型前抛出 InputValidationError
    - 同时提供时以文本为题面，图片一并交给视觉模型
    - 模型输出无法解析、解答为空，或仅图片输入时未给出题目：抛出 ModelOutputError
    - 文本输入而模型省略 analyzed_problem 时，回退为输入原文
    """
    problem_text = (problem or "").strip() or None
    image_data_uri = (image_data_uri or "").strip() or None
    if not problem_text and not image_data_uri:
        raise InputValidationError("请提供题目文本或题目图片")
    if image_data_uri:
        parse_image_data_uri(image_data_uri)

    prompt = (
        ANALYZE_TEXT_PROMPT.format(problem_text=problem_text)
        if problem_text
        else ANALYZE_IMAGE_PROMPT
    )
    try:
        if image_data_uri:
            output: AnalyzeAndSolveOutput = invoke_multimodal_structured(
                prompt,
                AnalyzeAndSolveOutput,
                image_data_uri=image_data_uri,
            )
        else:
            output = invoke_structured(prompt, AnalyzeAndSolveOutput)
    except (ValidationError, json.JSONDecodeError) as e:
        raise ModelOutputError("模型未能返回可解析的分析结果") from e

    if output is None:
        raise ModelOutputError("模型未能返回分析结果")

    analyzed_problem = (output.analyzed_problem or "").strip()
    if not analyzed_problem and problem_text:
        # 题目文本原样作为题面
        analyzed_problem = problem
    if not analyzed_problem or not (output.solution or "").strip():
        raise ModelOutputError("模型未能分析题目或给出解答")

    logger.info(
        "[analyzer] 分析完成 题目长度=%d 解答长度=%d 有图片=%s",
        len(analyzed_problem), len(output.solution), bool(image_data_uri),
    )
    return AnalysisResult(analyzed_problem=analyzed_problem, solution=output.solution)
