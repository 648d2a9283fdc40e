"""
Настройки из окружения (.env).
"""
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

DEFAULT_DB_URL = "sqlite:///storage/toollife.db"
DEFAULT_RECIPES_FILE = "data/recipes/tool_recipes.yaml"


@dataclass(frozen=True)
class Settings:
    """Конфигурация сервиса стойкости."""
    db_url: str = DEFAULT_DB_URL
    recipes_file: str = DEFAULT_RECIPES_FILE
    log_level: str = "INFO"
    log_dir: Path = Path("logs")


def get_settings(env_file: str = ".env") -> Settings:
    """Прочитать настройки. Переменные окружения важнее файла .env."""
    load_dotenv(env_file)

    return Settings(
        db_url=os.getenv("TOOLLIFE_DB_URL", DEFAULT_DB_URL),
        recipes_file=os.getenv("TOOLLIFE_RECIPES_FILE", DEFAULT_RECIPES_FILE),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        log_dir=Path(os.getenv("TOOLLIFE_LOG_DIR", "logs")),
    )
