"""
Configuration settings for the Production Monitoring Dashboard
"""

from pydantic_settings import BaseSettings
from typing import Optional
from urllib.parse import urlencode

class Settings(BaseSettings):
    """Application settings"""

    # AppSync (GraphQL)
    appsync_url: str = ""
    request_timeout: float = 15.0
    id_token: Optional[str] = None  # single-operator fallback when no header is sent

    # Cognito hosted UI
    cognito_domain: str = ""
    cognito_user_pool_id: str = ""
    cognito_user_pool_client_id: str = ""
    cognito_scopes: str = "openid email"
    redirect_sign_in: str = "http://localhost:5173/"
    redirect_sign_out: str = "http://localhost:5173/"
    admin_group: str = "admins"
    cognito_host: str = ""
    login_url: str = ""
    logout_url: str = ""

    # Display
    display_timezone: str = "Asia/Seoul"

    # Firmware / OTA
    fw_manifest_url: Optional[str] = None
    manifest_timeout: float = 10.0
    ota_poll_interval: float = 5.0  # seconds
    ota_timeout: float = 300.0  # 5 minutes
    ota_event_limit: int = 20
    ota_clock_skew_ms: int = 2000
    admin_list_limit: int = 300

    # Dashboard sessions
    session_idle_timeout: float = 1800.0  # seconds without a request before a session is dropped

    # Live feed prototype (API Gateway WebSocket)
    live_ws_url: Optional[str] = None
    live_login_id: Optional[str] = None
    live_buffer_size: int = 50
    live_reconnect_delay: float = 10.0

    # API Settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    debug: bool = True

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # Hosted UI endpoints from components
        self.cognito_host = self.cognito_domain.replace("https://", "").rstrip("/")
        if self.cognito_host:
            login_query = urlencode({
                "client_id": self.cognito_user_pool_client_id,
                "response_type": "code",
                "scope": self.cognito_scopes,
                "redirect_uri": self.redirect_sign_in,
            })
            logout_query = urlencode({
                "client_id": self.cognito_user_pool_client_id,
                "logout_uri": self.redirect_sign_out,
            })
            self.login_url = f"https://{self.cognito_host}/oauth2/authorize?{login_query}"
            self.logout_url = f"https://{self.cognito_host}/logout?{logout_query}"

# Global settings instance
settings = Settings()
