from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="HOTLOOP_",
        extra="ignore",
        frozen=True,
    )

    # Run loop
    delay_interval: float = Field(default=5.0, ge=0)
    max_consecutive_errors: int = Field(default=3, ge=1)
    clear_screen: bool = True
    load_aliases: bool = True  # run under bash with ~/.bash_aliases sourced

    # Output classification
    compile_error_marker: str = "COMPILATION ERROR"
    build_failure_marker: str = "BUILD FAILURE"
    classify_by_exit_status: bool = True
    error_context_lines: int = Field(default=6, ge=0)

    # Logging (file lives under the working directory; empty disables)
    log_file: str = "build-loop.log"

    # Notifications
    enable_notifications: bool = True
    notification_timeout_ms: int = Field(default=10000, ge=0)

    # Telegram (optional, leave empty for desktop notifications only)
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""

    # Port reaper
    poll_timeout: float = Field(default=300.0, gt=0)
    watch_error_backoff: float = Field(default=2.0, ge=0)
    watch_root_grace: float = Field(default=10.0, ge=0)
    reap_cooldown: float = Field(default=5.0, ge=0)


settings = Settings()
