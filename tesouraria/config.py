from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    # Preferred for backend writes (bypasses RLS)
    supabase_service_role_key: str = ""

    # Front end CORS origins (comma-separated)
    cors_origins: str = "http://localhost:5173,http://localhost:3000"

    log_level: str = "INFO"

    # Baixa: status updates are fanned out in batches of this size
    status_update_batch_size: int = 10
    # Pause between status update batches (seconds)
    status_update_pause_seconds: float = 0.0

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
