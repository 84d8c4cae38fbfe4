# src/config/settings.py
from pydantic_settings import BaseSettings
from pathlib import Path

# Get project root (2 levels up from this file)
PROJECT_ROOT = Path(__file__).parent.parent.parent

class Settings(BaseSettings):
    # OpenAI
    openai_api_key: str
    openai_llm_model: str = "gpt-4o"
    openai_temperature: float = 0.3
    openai_max_tokens: int = 1000

    # Classification
    ai_timeout_seconds: float = 15.0
    batch_delay_seconds: float = 1.0

    # SQL Server
    sql_server_host: str
    sql_server_port: int = 1433
    sql_server_database: str
    sql_server_username: str
    sql_server_password: str

    # Reporting
    report_default_days: int = 30
    log_level: str = "INFO"

    class Config:
        env_file = str(PROJECT_ROOT / ".env")
        case_sensitive = False
