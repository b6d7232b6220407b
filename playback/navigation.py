"""一次性查询参数 loadProblemId：读取后从 URL 中移除，避免刷新时重复加载。"""
import logging
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from api.gallery_store import GalleryStore
from api.models import SavedProblem

logger = logging.getLogger(__name__)

LOAD_PROBLEM_PARAM = "loadProblemId"


def consume_load_problem_param(url: str, store: GalleryStore) -> tuple[SavedProblem | None, str]:
    """
    :return: (图库记录或 None, 去掉 loadProblemId 后的 URL)
    URL 中没有该参数时原样返回 (None, url)；id 不存在时返回 None，由调用方提示无法加载。
    """
    parts = urlsplit(url)
    params = parse_qsl(parts.query, keep_blank_values=True)
    problem_ids = [v for k, v in params if k == LOAD_PROBLEM_PARAM]
    if not problem_ids:
        return None, url

    remaining = [(k, v) for k, v in params if k != LOAD_PROBLEM_PARAM]
    clean_url = urlunsplit(parts._replace(query=urlencode(remaining)))

    problem = store.load_problem(problem_ids[0]) if problem_ids[0] else None
    if problem is None:
        logger.warning("[navigation] 无法加载图库记录 id=%s", problem_ids[0])
    return problem, clean_url
