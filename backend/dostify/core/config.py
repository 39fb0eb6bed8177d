from pathlib import Path

from pydantic_settings import BaseSettings

DEFAULT_SYSTEM_PROMPT = """You are Dost, a friendly wellbeing and planning companion inside the Dostify app.
You help the user keep track of their mood and their planner tasks.

You have tools to log moods, read mood history, and create, list, update and delete tasks.
- When the user asks you to record or change something, call the matching tool instead of only describing it.
- Never invent task ids or mood entries; look them up with a tool first.
- Keep replies short, warm and practical."""


class Settings(BaseSettings):
    app_name: str = "Dostify"
    debug: bool = False

    # Database
    db_path: Path = Path(__file__).resolve().parent.parent.parent / "dostify.db"
    database_url: str = ""

    # Language model (Pollinations, OpenAI-compatible)
    ai_api_url: str = "https://text.pollinations.ai/openai"
    ai_api_key: str = ""
    ai_model: str = "openai"
    ai_referrer: str = "dostify"
    ai_timeout: float = 120.0
    ai_transport_retries: int = 1

    # Chat
    chat_context_window: int = 10
    system_prompt: str = DEFAULT_SYSTEM_PROMPT

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: list[str] = ["*"]
    frontend_url: str = "http://localhost:3000"

    model_config = {
        "env_file": str(Path(__file__).resolve().parent.parent.parent / ".env"),
        "env_prefix": "DOSTIFY_",
    }

    @property
    def sqlalchemy_url(self) -> str:
        return self.database_url or f"sqlite:///{self.db_path}"


settings = Settings()
