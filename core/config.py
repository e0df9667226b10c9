"""
配置文件 - 项目配置管理
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator


class Settings(BaseSettings):
    """项目配置"""

    # 基础配置
    PROJECT_NAME: str = Field(default="VR Relay")
    VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=True)
    ENVIRONMENT: str = Field(default="development")

    # 监听地址（仅 __main__ 启动时使用）
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=3001)

    # CORS配置
    CORS_ORIGINS: list = Field(default=["http://localhost:3000"])

    # Relay/WebSocket 配置
    RELAY_WS_PATH: str = Field(default="/ws")
    RELAY_GREETING_MESSAGE: str = Field(default="Connected")
    RELAY_SHUTDOWN_CLOSE_CODE: int = Field(
        default=1001,
        description="关闭进程时发送给所有客户端的 WebSocket close code",
    )

    # 日志/请求体记录配置
    LOG_REQUEST_BODY_ENABLE_BY_DEFAULT: bool = Field(default=True)
    LOG_REQUEST_BODY_MAX_BYTES: int = Field(default=2048)

    # pydantic-settings v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        """允许 JSON 字符串或逗号分隔字符串两种格式。"""
        if isinstance(v, list):
            return v
        if isinstance(v, str):
            s = v.strip()
            if s.startswith("[") and s.endswith("]"):
                import json
                try:
                    arr = json.loads(s)
                    if isinstance(arr, list):
                        return arr
                except ValueError:
                    pass
            if "," in s:
                return [item.strip() for item in s.split(",") if item.strip()]
            return [s]
        return v

    @field_validator("RELAY_WS_PATH")
    @classmethod
    def _normalize_ws_path(cls, v: str) -> str:
        v = (v or "/ws").strip()
        return v if v.startswith("/") else f"/{v}"


settings = Settings()
