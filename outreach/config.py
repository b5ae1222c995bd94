"""Application configuration via environment variables."""

from __future__ import annotations

import logging

from pydantic_settings import BaseSettings

log = logging.getLogger("outreach.config")

CALL_PROVIDERS = ("vapi", "twilio")
APPOINTMENT_STORES = ("supabase", "memory")

# Environment variable → Settings field, per call variant
CALL_CREDENTIALS: dict[str, tuple[tuple[str, str], ...]] = {
    "vapi": (
        ("VAPI_API_KEY", "vapi_api_key"),
        ("VAPI_PHONE_NUMBER_ID", "vapi_phone_number_id"),
        ("VAPI_ASSISTANT_ID", "vapi_assistant_id"),
    ),
    "twilio": (
        ("TWILIO_ACCOUNT_SID", "twilio_account_sid"),
        ("TWILIO_AUTH_TOKEN", "twilio_auth_token"),
        ("TWILIO_PHONE_NUMBER", "twilio_phone_number"),
        ("PUBLIC_BASE_URL", "public_base_url"),
    ),
}


class Settings(BaseSettings):
    # Active call variant: "vapi" (managed assistant) or "twilio" (media stream relay)
    call_provider: str = "vapi"

    # VAPI
    vapi_api_key: str = ""
    vapi_phone_number_id: str = ""
    vapi_assistant_id: str = ""
    vapi_base_url: str = "https://api.vapi.ai"

    # Twilio
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_phone_number: str = ""

    # ElevenLabs (Jessica, warm female voice)
    elevenlabs_api_key: str = ""
    elevenlabs_voice_id: str = "cgSgspJ2msm6clMCkdW9"
    elevenlabs_model_id: str = "eleven_turbo_v2_5"

    # Public https:// origin of this service, used for callback and stream URLs
    public_base_url: str = ""

    # Appointment store
    appointment_store: str = "supabase"
    supabase_url: str = ""
    supabase_service_role_key: str = ""
    appointments_table: str = "call_appointments"

    # Phone numbers without a leading "+" get this prefix
    default_country_code: str = "+91"

    # Media relay: inbound frames held for transcription (~20ms each)
    inbound_audio_queue_size: int = 500

    provider_timeout_seconds: float = 30.0

    # Admin auth
    admin_api_key: str = ""

    # Server
    host: str = "127.0.0.1"
    port: int = 8080
    debug: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    def missing_credentials(self, provider: str) -> list[str]:
        """Names of the credentials ``provider`` needs that are not set."""
        return [
            env_name
            for env_name, field_name in CALL_CREDENTIALS.get(provider, ())
            if not getattr(self, field_name)
        ]

    def missing_call_config(self) -> list[str]:
        """Names of the credentials the active call variant still needs."""
        return self.missing_credentials(self.call_provider)

    def missing_store_config(self) -> list[str]:
        if self.appointment_store != "supabase":
            return []
        required = {
            "SUPABASE_URL": self.supabase_url,
            "SUPABASE_SERVICE_ROLE_KEY": self.supabase_service_role_key,
        }
        return [name for name, value in required.items() if not value]

    def validate_startup(self) -> list[str]:
        """Validate configuration at startup. Returns warnings, raises on errors."""
        warnings: list[str] = []

        if self.call_provider not in CALL_PROVIDERS:
            raise ValueError(
                f"CALL_PROVIDER must be one of {', '.join(CALL_PROVIDERS)}, "
                f"got {self.call_provider!r}."
            )
        if self.appointment_store not in APPOINTMENT_STORES:
            raise ValueError(
                f"APPOINTMENT_STORE must be one of {', '.join(APPOINTMENT_STORES)}, "
                f"got {self.appointment_store!r}."
            )

        missing = self.missing_call_config()
        if missing:
            warnings.append(
                f"{', '.join(missing)} not set. Outbound calls via "
                f"{self.call_provider} will be rejected."
            )

        missing = self.missing_store_config()
        if missing:
            warnings.append(
                f"{', '.join(missing)} not set. Appointment records cannot be stored."
            )
        if self.appointment_store == "memory":
            warnings.append(
                "APPOINTMENT_STORE=memory. Records are lost when the process exits."
            )

        if self.call_provider == "twilio" and not self.elevenlabs_api_key:
            warnings.append(
                "ELEVENLABS_API_KEY not set. The media relay will stay silent."
            )

        if not self.admin_api_key:
            if self.debug:
                warnings.append(
                    "ADMIN_API_KEY not set. Admin APIs are open (DEBUG=true)."
                )
            else:
                warnings.append(
                    "ADMIN_API_KEY not set. Admin APIs are locked in production. "
                    "Set ADMIN_API_KEY in .env to enable admin access."
                )

        return warnings


settings = Settings()
