"""图库持久化：单个 key 下保存 SavedProblem 的 JSON 数组（新的在前，最多 50 条），支持列表、保存、删除、按 id 加载。"""
import json
import logging
import sqlite3
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Protocol

from pydantic import ValidationError

from errors import StorageUnavailableError

from api.models import SavedProblem, SolutionData

logger = logging.getLogger(__name__)

GALLERY_KEY = "stepwiseSolverGallery"
GALLERY_MAX_ITEMS = 50

# 旧版记录用 whiteboardImages 保存白板内容
LEGACY_WHITEBOARD_FIELD = "whiteboardImages"
WHITEBOARD_FIELD = "whiteboardStepTexts"


class KeyValueStorage(Protocol):
    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def migrate_record(raw: dict[str, Any]) -> dict[str, Any]:
    """读路径升级：缺少 whiteboardStepTexts 时用旧字段 whiteboardImages 顶替。"""
    if raw.get(WHITEBOARD_FIELD):
        return raw
    migrated = {k: v for k, v in raw.items() if k != LEGACY_WHITEBOARD_FIELD}
    migrated[WHITEBOARD_FIELD] = raw.get(WHITEBOARD_FIELD) or raw.get(LEGACY_WHITEBOARD_FIELD) or []
    return migrated


class GalleryStore:
    """
    图库服务，存储后端通过构造参数注入。
    storage 为 None 表示当前环境没有持久化存储：读返回空，写抛 StorageUnavailableError。
    无并发写保护，后写覆盖先写。
    """

    def __init__(
        self,
        storage: KeyValueStorage | None,
        *,
        key: str = GALLERY_KEY,
        cap: int = GALLERY_MAX_ITEMS,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.storage = storage
        self.key = key
        self.cap = cap
        self.clock = clock

    def list_problems(self) -> list[SavedProblem]:
        """按保存时间倒序返回全部记录；存储不可用、读取失败或数据损坏时返回空列表。"""
        if self.storage is None:
            return []
        try:
            raw_data = self.storage.get_item(self.key)
        except (sqlite3.Error, OSError) as e:
            logger.error("[gallery] 读取图库失败: %s", e)
            return []
        if not raw_data:
            return []
        try:
            items = json.loads(raw_data)
        except json.JSONDecodeError as e:
            logger.error("[gallery] 图库数据无法解析: %s", e)
            return []
        if not isinstance(items, list):
            logger.error("[gallery] 图库数据格式错误: 期望数组，实际为 %s", type(items).__name__)
            return []

        problems: list[SavedProblem] = []
        for item in items:
            if not isinstance(item, dict):
                logger.warning("[gallery] 跳过非对象记录: %r", item)
                continue
            try:
                problems.append(SavedProblem.model_validate(migrate_record(item)))
            except ValidationError as e:
                logger.warning("[gallery] 跳过无效记录 id=%s: %s", item.get("id"), e)
        return problems

    def _write(self, problems: list[SavedProblem]) -> None:
        if self.storage is None:
            raise StorageUnavailableError("当前环境没有可用的持久化存储")
        payload = json.dumps(
            [p.model_dump(by_alias=True) for p in problems],
            ensure_ascii=False,
        )
        try:
            self.storage.set_item(self.key, payload)
        except (sqlite3.Error, OSError) as e:
            raise StorageUnavailableError(f"写入图库失败: {e}") from e

    def save_problem(self, solution: SolutionData) -> SavedProblem:
        """插入到最前，超过上限时淘汰最旧的记录。id 为当前毫秒时间戳。"""
        if self.storage is None:
            raise StorageUnavailableError("当前环境没有可用的持久化存储")
        now = self.clock()
        saved = SavedProblem(
            **solution.model_dump(include=set(SolutionData.model_fields)),
            id=str(int(now.timestamp() * 1000)),
            created_at=now.isoformat(),
        )
        problems = self.list_problems()
        problems.insert(0, saved)
        self._write(problems[: self.cap])
        logger.info("[gallery] 已保存 id=%s 当前条数=%d", saved.id, min(len(problems), self.cap))
        return saved

    def delete_problem(self, problem_id: str) -> bool:
        """删除一条记录，返回是否删除成功。"""
        problems = self.list_problems()
        remaining = [p for p in problems if p.id != problem_id]
        self._write(remaining)
        deleted = len(remaining) < len(problems)
        logger.info("[gallery] 删除 id=%s 结果=%s", problem_id, deleted)
        return deleted

    def load_problem(self, problem_id: str) -> Optional[SavedProblem]:
        """按 id 查询一条记录，不存在返回 None。"""
        for problem in self.list_problems():
            if problem.id == problem_id:
                return problem
        return None
