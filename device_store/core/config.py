from typing import Optional

from pydantic_settings import BaseSettings

from device_store.schemas.device import DeviceType


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///./device_store.db"
    collection_path: str = "user-devices"

    device_type: DeviceType = DeviceType.DESKTOP
    device_id: Optional[str] = None
    device_name: Optional[str] = None

    transaction_max_attempts: int = 5
    log_level: str = "INFO"

    jwt_secret: str
    jwt_algorithm: str = "HS256"
    jwt_expiry_hours: int = 24

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

settings = Settings()
