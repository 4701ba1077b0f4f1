# voicescribe/config.py
import os
from pydantic import BaseModel
from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file


def _split_csv(raw: str | None) -> list[str]:
    return [part.strip() for part in (raw or "").split(",") if part.strip()]


class Settings(BaseModel):
    # General app settings
    APP_NAME: str = "VoiceScribe"
    VERSION: str = "1.2.0"
    env: str = os.getenv("ENV", "dev")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Host & Port settings
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "3000"))
    base_url: str = os.getenv("BASE_URL", "https://your-domain.com")

    # CORS origins for the dashboard ("*" when unset)
    CORS_ORIGINS: list[str] = _split_csv(os.getenv("CORS_ORIGINS")) or ["*"]

    # Storage: one SQLite snapshot file under data_dir
    data_dir: str = os.getenv("DATA_DIR", "./data")
    db_filename: str = "transcriptions.db"

    # OpenAI Whisper API Settings (for ASR)
    openai_api_key: str | None = os.getenv("OPENAI_API_KEY")
    whisper_api_url: str = os.getenv("WHISPER_API_URL", "https://api.openai.com/v1/audio/transcriptions")
    whisper_model: str = os.getenv("WHISPER_MODEL", "whisper-1")

    # WhatsApp Cloud API Settings
    whatsapp_api_url: str = os.getenv("WHATSAPP_API_URL", "https://graph.facebook.com/v18.0")
    whatsapp_access_token: str | None = os.getenv("WHATSAPP_ACCESS_TOKEN")
    whatsapp_phone_number_id: str | None = os.getenv("WHATSAPP_PHONE_NUMBER_ID")
    whatsapp_verify_token: str | None = os.getenv("WHATSAPP_VERIFY_TOKEN")
    # Webhook signatures are only checked when the app secret is set
    whatsapp_app_secret: str | None = os.getenv("WHATSAPP_APP_SECRET")

    # Forwarding of finished transcriptions to other numbers
    forward_template_name: str = os.getenv("FORWARD_TEMPLATE_NAME", "voice_transcription_forward")
    forward_template_language: str = os.getenv("FORWARD_TEMPLATE_LANGUAGE", "en")

    @property
    def db_path(self) -> str:
        return os.path.join(self.data_dir, self.db_filename)

    @property
    def whatsapp_connected(self) -> bool:
        return bool(self.whatsapp_access_token and self.whatsapp_phone_number_id)

    def forward_to_numbers(self) -> list[str]:
        """
        Numbers that receive a copy of every WhatsApp transcription.

        Read from FORWARD_TO_NUMBERS on every call so the list can change
        while the process is running.
        """
        return _split_csv(os.getenv("FORWARD_TO_NUMBERS"))


settings = Settings()  # Instantiate configuration
