"""
会所预约系统主应用入口
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from club.config import settings
from club.database import init_db, SessionLocal
from club.errors import ClubError
from club.routers import availability, reservations, memberships, settlements, payments

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    init_db()

    backend = None
    if settings.SCHEDULER_ENABLED:
        from club.system.scheduler_backend import APSchedulerBackend
        from club.services.jobs import register_jobs

        backend = APSchedulerBackend()
        register_jobs(backend, SessionLocal)
        backend.start()

    yield

    if backend is not None:
        backend.shutdown()


# 创建应用
app = FastAPI(
    title=settings.APP_NAME,
    description="Reservas de servicios y canchas para membresías familiares",
    version="1.0.0",
    lifespan=lifespan
)

# CORS 配置
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ClubError)
async def club_error_handler(request: Request, exc: ClubError):
    """业务异常统一转换为 JSON 响应"""
    logger.info(f"{request.method} {request.url.path} -> {exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# 注册路由
app.include_router(availability.router)
app.include_router(reservations.router)
app.include_router(memberships.router)
app.include_router(settlements.router)
app.include_router(payments.router)


@app.get("/")
def root():
    return {"name": settings.APP_NAME, "version": "1.0.0"}


@app.get("/health")
def health_check():
    """健康检查"""
    return {"status": "healthy"}
