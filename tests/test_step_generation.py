"""步骤拆分、白板呈现与旁白生成单测：模型调用 mock。"""
import pytest

from errors import EmptySolutionError, ModelOutputError
from step_generation import narration, presentation
from step_generation.narration import generate_narrations, generate_voice_narration
from step_generation.presentation import prepare_whiteboard_steps
from step_generation.schemas import VoiceNarrationOutput
from step_generation.splitter import split_solution_steps, truncate_step


def test_split_drops_blank_lines_and_keeps_order():
    solution = "Start with 2x + 5 = 15\n\n   \nSubtract 5: 2x = 10\r\nDivide by 2: x = 5\n"
    assert split_solution_steps(solution) == [
        "Start with 2x + 5 = 15",
        "Subtract 5: 2x = 10",
        "Divide by 2: x = 5",
    ]


def test_split_keeps_line_content_verbatim():
    solution = "Let x be the width:\n    2x + 5 = 15\n\t2x = 10  \n  x = 5\r\n"
    assert split_solution_steps(solution) == [
        "Let x be the width:",
        "    2x + 5 = 15",
        "\t2x = 10  ",
        "  x = 5",
    ]


def test_split_empty_solution_raises():
    with pytest.raises(EmptySolutionError):
        split_solution_steps(" \n\n\t")
    with pytest.raises(EmptySolutionError):
        split_solution_steps("")


def test_truncate_step():
    assert truncate_step("abcdef", 3) == "abc"
    assert truncate_step("abc", 1000) == "abc"
    assert truncate_step("abc", None) == "abc"


def test_text_presentation_is_passthrough():
    steps = ["x<sup>2</sup> = 4", "x = 2 or x = -2"]
    presented = prepare_whiteboard_steps("x^2 = 4", steps, mode="text")
    assert presented == steps
    assert presented is not steps


def test_image_presentation_one_call_per_step(monkeypatch):
    prompts = []

    def fake_generate(prompt, **kwargs):
        prompts.append(prompt)
        return f"data:image/png;base64,STEP{len(prompts)}"

    monkeypatch.setattr(presentation, "generate_image_data_uri", fake_generate)
    images = prepare_whiteboard_steps("1 + 1", ["1 + 1", "= 2"], mode="image")
    assert images == ["data:image/png;base64,STEP1", "data:image/png;base64,STEP2"]
    assert '"= 2"' in prompts[1]


def test_image_presentation_aborts_on_missing_image(monkeypatch):
    results = iter(["data:image/png;base64,AAAA", None, "data:image/png;base64,CCCC"])
    calls = []

    def fake_generate(prompt, **kwargs):
        calls.append(prompt)
        return next(results)

    monkeypatch.setattr(presentation, "generate_image_data_uri", fake_generate)
    with pytest.raises(ModelOutputError, match="第 2 步"):
        prepare_whiteboard_steps("p", ["a", "b", "c"], mode="image")
    assert len(calls) == 2


def test_unknown_presentation_mode_raises():
    with pytest.raises(ValueError, match="未知的白板模式"):
        prepare_whiteboard_steps("p", ["a"], mode="video")


def test_narrations_follow_step_order(monkeypatch):
    seen = []

    def fake_invoke(prompt, schema, **kwargs):
        step = prompt.split("Technical Step: ", 1)[1].split("\n", 1)[0]
        seen.append(step)
        return VoiceNarrationOutput(voice_narration=f"spoken {step}")

    monkeypatch.setattr(narration, "invoke_structured", fake_invoke)
    steps = ["2x + 5 = 15", "2x = 10", "x = 5"]
    assert generate_narrations(steps) == ["spoken 2x + 5 = 15", "spoken 2x = 10", "spoken x = 5"]
    assert seen == steps


def test_narration_input_is_truncated(monkeypatch):
    monkeypatch.setenv("STEP_INPUT_MAX_CHARS", "10")
    prompts = []

    def fake_invoke(prompt, schema, **kwargs):
        prompts.append(prompt)
        return VoiceNarrationOutput(voice_narration="ok")

    monkeypatch.setattr(narration, "invoke_structured", fake_invoke)
    generate_voice_narration("0123456789ABCDEF")
    assert "Technical Step: 0123456789\n" in prompts[0]


def test_narration_failure_aborts_remaining_steps(monkeypatch):
    calls = []

    def fake_invoke(prompt, schema, **kwargs):
        calls.append(prompt)
        if len(calls) == 2:
            return VoiceNarrationOutput(voice_narration="")
        return VoiceNarrationOutput(voice_narration="fine")

    monkeypatch.setattr(narration, "invoke_structured", fake_invoke)
    with pytest.raises(ModelOutputError):
        generate_narrations(["a", "b", "c"])
    assert len(calls) == 2


def test_voice_narration_live():
    """真实模型冒烟测试，需 OPENAI_API_KEY。"""
    pytest.importorskip("langchain_openai")
    import os
    if not os.environ.get("OPENAI_API_KEY"):
        pytest.skip("OPENAI_API_KEY not set")
    spoken = generate_voice_narration("x<sup>2</sup> = 4")
    assert "squared" in spoken.lower() or "power" in spoken.lower()
