from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_env: str = "dev"
    app_host: str = "0.0.0.0"
    app_port: int = 8081
    log_level: str = "INFO"
    allowed_origins: list[str] = ["*"]

    lessons_file: str = "data/lessons.json"
    secret_lessons_file: str = "data/secret_knowledge_lessons.json"
    pro_challenges_file: str = "data/pro_challenges.json"
    leaderboard_file: str = "data/leaderboard.json"

    coins_per_correct_answer: int = 10
    quiz_completion_xp: int = 50
    fallback_quiz_size: int = 10
    lesson_repeat_window: int = 100
    hint_cost_coins: int = 2

    session_store_backend: str = "memory"
    redis_url: str = "redis://localhost:6379/0"
    session_ttl_seconds: int = 60 * 60 * 24 * 30
    session_lock_timeout_seconds: float = 10.0
    session_cookie_name: str = "sid"
    session_cookie_max_age_seconds: int = 60 * 60 * 24 * 30

    ai_lessons_enabled: bool = False
    ai_provider: str = "openai"
    ai_model: str = ""
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    max_ai_lessons_per_day: int = 10
    ai_timeout_seconds: float = 30.0

    external_lessons_enabled: bool = False
    external_lessons_refresh_seconds: int = 6 * 60 * 60
    external_fetch_timeout_seconds: float = 10.0

    judge_url: str = ""
    judge_timeout_seconds: float = 15.0

    leaderboard_max_entries: int = 1000
    leaderboard_cooldown_seconds: int = 60
    leaderboard_name_max_length: int = 30
    leaderboard_default_limit: int = 100

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


settings = Settings()
