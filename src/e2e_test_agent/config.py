"""Runtime configuration loaded from environment variables."""

from enum import Enum
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class BrowserType(str, Enum):
    CHROMIUM = "chromium"
    FIREFOX = "firefox"
    WEBKIT = "webkit"


class Settings(BaseSettings):
    """Agent settings.

    Every field maps to the upper-case environment variable of the same
    name (``API_URL``, ``TEST_TIMEOUT``, ...).
    """

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    # Target
    api_url: str = "http://localhost:3000"

    # Execution
    test_timeout: int = 30000  # per step, milliseconds
    test_retries: int = 0  # extra attempts for a failed case
    max_workers: int = 4
    test_storage_dir: str = "./test-results"

    # Synthesis
    max_test_cases: int = 10
    llm_model: str | None = None

    # Browser
    browser_type: BrowserType = BrowserType.CHROMIUM
    browser_headless: bool = True
    browser_viewport_width: int = 1280
    browser_viewport_height: int = 720
    browser_slow_mo: int = 0

    log_level: str = "INFO"

    @property
    def step_timeout(self) -> float:
        """Step timeout in seconds."""
        return self.test_timeout / 1000


@lru_cache
def get_settings() -> Settings:
    return Settings()
