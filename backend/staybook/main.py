"""
StayBook 主应用入口
酒店客房预订后端
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from staybook.config import settings
from staybook.database import init_db
from staybook.models.ontology import utcnow
from staybook.routers import auth, rooms, bookings, admin

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    # 初始化数据库
    init_db()

    # 注册事件处理器
    from staybook.services.event_handlers import register_event_handlers
    register_event_handlers()

    logger.info(f"{settings.APP_NAME} started")
    yield
    logger.info(f"{settings.APP_NAME} stopped")


app = FastAPI(
    title="StayBook - 酒店客房预订系统",
    description="客房查询、预订生命周期、支付确认与入住退房",
    version="1.0.0",
    lifespan=lifespan
)

# CORS 配置
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 注册路由
app.include_router(auth.router, prefix="/api")
app.include_router(rooms.router, prefix="/api")
app.include_router(bookings.router, prefix="/api")
app.include_router(admin.router, prefix="/api")


@app.get("/")
def root():
    """根路径"""
    return {
        "name": settings.APP_NAME,
        "version": "1.0.0",
    }


@app.get("/api/health")
def health_check():
    """健康检查"""
    return {"status": "OK", "timestamp": utcnow().isoformat()}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("staybook.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
