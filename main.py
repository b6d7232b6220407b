"""FastAPI 应用入口：挂载 API 与 Web 前端静态目录。"""
import logging
from pathlib import Path

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from api.routes import get_gallery_store, router

# 配置日志：便于查看 /api/solve 各阶段执行进度
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
# 降低 uvicorn 访问日志噪音，业务日志仍为 INFO
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

app = FastAPI(title="StepWise Solver", version="0.1.0")


@app.on_event("startup")
def startup():
    get_gallery_store().storage.init_db()


app.include_router(router, prefix="/api", tags=["solver"])

# Web 界面：静态页面目录
STATIC_DIR = Path(__file__).resolve().parent / "static"
if STATIC_DIR.exists():
    app.mount("/", StaticFiles(directory=str(STATIC_DIR), html=True), name="static")
