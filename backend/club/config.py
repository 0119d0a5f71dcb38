"""
应用配置
从环境变量 / .env 读取配置
"""
from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """应用设置"""

    # 应用基础配置
    APP_NAME: str = "Club Reservas"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # 数据库配置
    DATABASE_URL: str = "sqlite:///./club.db"

    # JWT 配置
    SECRET_KEY: str = "club-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 480

    # 排班与时段
    APPOINTMENT_BUFFER_MINUTES: int = 10
    RESOURCE_SLOT_MINUTES: int = 60
    DEFAULT_OPEN_TIME: str = "07:00"
    DEFAULT_CLOSE_TIME: str = "22:00"
    APPROVAL_TIMEOUT_MINUTES: int = 120

    # 后台任务
    SCHEDULER_ENABLED: bool = True
    EXPIRY_SWEEP_MINUTES: int = 30
    COMPLETION_SWEEP_MINUTES: int = 15
    SUSPENSION_SWEEP_MINUTES: int = 30

    # 结算：同一周期重复生成时的处理方式 skip | replace
    SETTLEMENT_DUPLICATE_POLICY: str = "skip"

    model_config = ConfigDict(env_file=".env", case_sensitive=True)


# 全局设置实例
settings = Settings()
