"""FastAPI 路由：POST /solve、/solve_upload 解题，/gallery 图库增删查，/narration_audio 旁白音频。"""
import logging
import uuid
from pathlib import Path

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import FileResponse
from starlette.background import BackgroundTask

from api.gallery_store import GalleryStore
from api.models import NarrationAudioRequest, SavedProblem, SolutionData, SolveRequest
from api.pipeline import solve_problem
from api.storage import SQLiteKeyValueStorage
from asset_generation.tts import synthesize_narration_async
from config import get_settings
from errors import InputValidationError, SolveError, StorageUnavailableError
from problem_analysis.image_data import ALLOWED_IMAGE_TYPES, image_to_data_uri

logger = logging.getLogger(__name__)
router = APIRouter()


def get_gallery_store() -> GalleryStore:
    s = get_settings()
    return GalleryStore(
        SQLiteKeyValueStorage(s.gallery_db_path),
        key=s.gallery_key,
        cap=s.gallery_max_items,
    )


def _solve_or_raise(problem: str | None, image_data_uri: str | None) -> SolutionData:
    try:
        return solve_problem(problem, image_data_uri)
    except SolveError as e:
        status = 400 if isinstance(e.cause, InputValidationError) else 502
        raise HTTPException(status_code=status, detail=str(e)) from e


@router.post("/solve", response_model=SolutionData)
def solve(request: SolveRequest):
    """JSON 入参：problem 与 imageDataUri 至少一个。同步处理，直接返回完整解答。"""
    logger.info(
        "[solve] 收到请求 有文字=%s 有图片=%s", bool(request.problem), bool(request.image_data_uri),
    )
    return _solve_or_raise(request.problem, request.image_data_uri)


@router.post("/solve_upload", response_model=SolutionData)
async def solve_upload(
    problem: str | None = Form(None, description="题目文本，与图片至少提供一个"),
    image: UploadFile | None = File(None, description="题目图片"),
):
    """multipart：仅文本、仅图片、或文本+图片。"""
    image_data_uri: str | None = None
    if image and image.filename:
        content_type = image.content_type or "image/jpeg"
        if content_type not in ALLOWED_IMAGE_TYPES:
            raise HTTPException(
                status_code=400,
                detail=f"不支持的图片类型，仅支持: {', '.join(sorted(ALLOWED_IMAGE_TYPES))}",
            )
        image_bytes = await image.read()
        try:
            image_data_uri = image_to_data_uri(image_bytes, content_type)
        except InputValidationError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

    logger.info("[solve] 收到上传请求 有文字=%s 有图片=%s", bool((problem or "").strip()), bool(image_data_uri))
    return await run_in_threadpool(_solve_or_raise, problem, image_data_uri)


@router.get("/gallery", response_model=list[SavedProblem])
def list_gallery(store: GalleryStore = Depends(get_gallery_store)):
    return store.list_problems()


@router.post("/gallery", response_model=SavedProblem)
def save_to_gallery(solution: SolutionData, store: GalleryStore = Depends(get_gallery_store)):
    if not solution.solution_steps or not solution.problem_statement.strip():
        raise HTTPException(status_code=400, detail="请先解题再保存")
    try:
        return store.save_problem(solution)
    except StorageUnavailableError as e:
        logger.error("[gallery] 保存失败: %s", e)
        raise HTTPException(status_code=503, detail=str(e)) from e


@router.get("/gallery/{problem_id}", response_model=SavedProblem)
def load_from_gallery(problem_id: str, store: GalleryStore = Depends(get_gallery_store)):
    problem = store.load_problem(problem_id)
    if problem is None:
        raise HTTPException(status_code=404, detail="记录不存在")
    return problem


@router.delete("/gallery/{problem_id}")
def delete_from_gallery(problem_id: str, store: GalleryStore = Depends(get_gallery_store)):
    try:
        deleted = store.delete_problem(problem_id)
    except StorageUnavailableError as e:
        logger.error("[gallery] 删除失败: %s", e)
        raise HTTPException(status_code=503, detail=str(e)) from e
    if not deleted:
        raise HTTPException(status_code=404, detail="记录不存在")
    return {"deleted": True, "id": problem_id}


@router.post("/narration_audio")
async def narration_audio(request: NarrationAudioRequest):
    """把一段旁白合成为 MP3 返回，时长（秒）放在 X-Narration-Duration 响应头。文件在响应发送后删除。"""
    output_path = Path(get_settings().audio_output_dir) / f"{uuid.uuid4().hex}.mp3"
    try:
        duration = await synthesize_narration_async(request.text, output_path)
    except ValueError as e:
        output_path.unlink(missing_ok=True)
        raise HTTPException(status_code=400, detail=str(e)) from e
    except Exception as e:
        output_path.unlink(missing_ok=True)
        logger.exception("[TTS] 旁白合成失败: %s", e)
        raise HTTPException(status_code=502, detail=f"旁白合成失败: {e}") from e
    return FileResponse(
        str(output_path),
        media_type="audio/mpeg",
        headers={"X-Narration-Duration": f"{duration:.3f}"},
        background=BackgroundTask(output_path.unlink, missing_ok=True),
    )
