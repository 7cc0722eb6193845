# clinic_agenda/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ===== App =====
    APP_NAME: str = "clinic_agenda"
    ENV: str = "dev"
    # TZ por defecto de las clínicas (cada tenant puede sobreescribirla)
    TIMEZONE: str = "America/Sao_Paulo"

    # ===== DB =====
    DATABASE_URL: str = "sqlite:///./clinic_agenda.db"

    DB_POOL_SIZE: int = 2
    DB_MAX_OVERFLOW: int = 5
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800  # 30 min

    # ===== Twilio =====
    TWILIO_ACCOUNT_SID: Optional[str] = None
    TWILIO_AUTH_TOKEN: Optional[str] = None
    TWILIO_WHATSAPP_FROM: Optional[str] = None

    # Simulación (True = no envía mensajes reales)
    DRY_RUN: bool = False

    # ===== Agenda / slots =====
    DEFAULT_SLOT_DURATION_MIN: int = 60
    DEFAULT_DAYS_AHEAD: int = 7
    MAX_DAYS_AHEAD: int = 30

    # ===== Recordatorios =====
    REMINDERS_ENABLED: bool = True
    REMINDER_HOURS_BEFORE: int = 24

    # ===== LLM (opcional) =====
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_LLM_MODEL: str = "gpt-4o-mini"

    # ===== Super admin =====
    ADMIN_TOKEN: Optional[str] = None

    def model_post_init(self, __context) -> None:
        """
        Normaliza la ventana de búsqueda:
          - MAX_DAYS_AHEAD nunca menor que 1
          - DEFAULT_DAYS_AHEAD dentro de [1, MAX_DAYS_AHEAD]
        """
        if self.MAX_DAYS_AHEAD < 1:
            self.MAX_DAYS_AHEAD = 1
        self.DEFAULT_DAYS_AHEAD = max(1, min(self.DEFAULT_DAYS_AHEAD, self.MAX_DAYS_AHEAD))

        if self.DEFAULT_SLOT_DURATION_MIN <= 0:
            self.DEFAULT_SLOT_DURATION_MIN = 60


settings = Settings()
