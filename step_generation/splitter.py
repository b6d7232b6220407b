"""把模型给出的多行解答拆成有序步骤。"""
from errors import EmptySolutionError


def split_solution_steps(solution: str) -> list[str]:
    """按换行拆分，去掉空白行，保持原顺序。行内容原样保留，缩进不动，CRLF 只去掉行尾回车。没有任何步骤时抛出 EmptySolutionError。"""
    steps = [line.removesuffix("\r") for line in (solution or "").split("\n") if line.strip()]
    if not steps:
        raise EmptySolutionError("未能从解答中拆分出任何步骤")
    return steps


def truncate_step(step: str, max_chars: int | None) -> str:
    """截断送给下游模型的步骤文本；有损，仅用于控制请求长度。"""
    if max_chars is None or max_chars <= 0 or len(step) <= max_chars:
        return step
    return step[:max_chars]
