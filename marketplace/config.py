"""
설정 관리 모듈
환경 변수를 읽어 Pydantic 모델로 변환하여 타입 안전성 보장
"""

from functools import lru_cache
from pathlib import Path
from typing import List, Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# .env 파일 로드
load_dotenv(dotenv_path=".env", override=False)


class SupabaseConfig(BaseSettings):
    """Supabase 설정"""

    url: str = Field(...)
    service_role_key: str = Field(...)

    model_config = SettingsConfigDict(env_prefix="SUPABASE_")


class Settings(BaseSettings):
    """전체 애플리케이션 설정"""

    # 환경
    env: Literal["development", "staging", "production", "test"] = Field(default="development")

    # 로깅
    log_level: str = Field(default="INFO")
    log_file: Optional[Path] = Field(default=None)

    # 저장소
    storage_backend: Literal["json", "supabase"] = Field(default="json")
    local_data_path: Path = Field(default=Path("./data"))

    # 인증
    jwt_secret: str = Field(default="change-me")
    jwt_algorithm: str = Field(default="HS256")

    # 마켓 기본값
    default_country: str = Field(default="Bangladesh")

    # API 서버
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000)
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    _supabase: Optional[SupabaseConfig] = None

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    @field_validator("log_file", mode="before")
    @classmethod
    def create_log_path(cls, v):
        if v:
            path = Path(v)
            path.parent.mkdir(parents=True, exist_ok=True)
            return path
        return v

    @field_validator("local_data_path", mode="before")
    @classmethod
    def create_data_path(cls, v):
        path = Path(v)
        path.mkdir(parents=True, exist_ok=True)
        return path

    @property
    def supabase(self) -> Optional[SupabaseConfig]:
        """Supabase 설정 (lazy loading, 미설정 시 None)"""
        if self._supabase is None:
            try:
                self._supabase = SupabaseConfig()
            except ValueError:
                return None
        return self._supabase

    def is_production(self) -> bool:
        """프로덕션 환경 여부"""
        return self.env == "production"

    def is_development(self) -> bool:
        """개발 환경 여부"""
        return self.env == "development"


@lru_cache()
def get_settings() -> Settings:
    """설정 싱글톤 인스턴스 반환"""
    return Settings()


# 전역 설정 인스턴스
settings = get_settings()
