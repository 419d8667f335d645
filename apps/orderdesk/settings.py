from pydantic_settings import BaseSettings
from dotenv import load_dotenv

from .services.calculator import ReturnPolicy

load_dotenv(".env.local")

class Settings(BaseSettings):
    DATABASE_URL: str
    ORG_ID: str
    DB_POOL_MIN_SIZE: int = 1
    DB_POOL_MAX_SIZE: int = 10
    # money is rounded once, when totals leave the calculator
    MONEY_PLACES: int = 2
    TOTAL_TOLERANCE: float = 0.02
    RETURN_POLICY: ReturnPolicy = ReturnPolicy.REVERSES_PAYMENT
    LOG_LEVEL: str = "INFO"

settings = Settings()
