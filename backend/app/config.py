from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # Redis (AI configuration blob store)
    REDIS_URL: str = "redis://redis:6379/0"

    # AI configuration store: memory | redis
    AI_CONFIG_STORE: str = "memory"
    AI_CONFIG_KEY: str = "devcenter_ai_config"

    # AI provider calls
    AI_TIMEOUT: int = 120           # per-provider timeout, seconds
    AI_TEMPERATURE: float = 0.3

    # Provider defaults (used when the stored config leaves them empty)
    GEMINI_DEFAULT_MODEL: str = "gemini-3-flash-preview"
    BAILIAN_DEFAULT_MODEL: str = "qwen-turbo"
    BAILIAN_DEFAULT_BASE_URL: str = "https://dashscope.aliyuncs.com/compatible-mode/v1"

    # Prompt size limits (characters)
    CHAT_CONTEXT_MAX_CHARS: int = 200_000
    IMPORT_TEXT_MAX_CHARS: int = 300_000

    # Document import
    MAX_UPLOAD_SIZE: int = 20 * 1024 * 1024   # 20 MB

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
