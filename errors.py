"""解题流水线、播放与图库共用的异常与警告类型。"""


class StepwiseError(Exception):
    """所有业务异常的基类。"""


class InputValidationError(StepwiseError, ValueError):
    """既无题目文本也无图片，或图片 data URI 不合法。"""


class ModelOutputError(StepwiseError):
    """模型没有返回可用内容。"""


class EmptySolutionError(StepwiseError):
    """解答拆分后没有任何步骤。"""


EmptyResultError = EmptySolutionError


class SolveError(StepwiseError):
    """编排层统一包装：任一阶段失败都以该异常抛给调用方，cause 为原始异常。"""

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause


class SpeechPlaybackError(StepwiseError):
    """旁白播放失败，由播放控制器本地处理（暂停 + 提示），不终止会话。"""

    def __init__(self, step_index: int, reason: str):
        super().__init__(f"第 {step_index + 1} 步旁白播放失败: {reason}")
        self.step_index = step_index
        self.reason = reason


class StorageUnavailableError(StepwiseError):
    """当前环境没有可用的持久化存储，或写入失败。"""


class CardinalityMismatchWarning(UserWarning):
    """步骤、白板文本、旁白三者数量不一致（只警告，不中断）。"""
