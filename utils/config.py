# utils/config.py
import os
from typing import List, Optional
from dotenv import load_dotenv
from pydantic import BaseModel

# Load environment variables
load_dotenv()

APP_VERSION = "2.0.0"

def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")

class AppConfig(BaseModel):
    app_name: str = "Workout Tracker Pro"
    version: str = APP_VERSION
    environment: str = "development"
    port: int = 3000
    api_url: str = ""
    supabase_url: Optional[str] = None
    supabase_service_role_key: Optional[str] = None
    supabase_anon_key: Optional[str] = None
    cors_origins: List[str] = ["http://localhost:8080", "http://127.0.0.1:8080"]
    local_storage_prefix: str = "wt_"
    cache_dir: str = ".workout_cache"
    allow_future_dates: bool = False

    def public_config(self) -> dict:
        """Values that are safe to hand to the browser"""
        return {
            "supabaseUrl": self.supabase_url,
            "supabaseAnonKey": self.supabase_anon_key,
            "appName": self.app_name,
            "version": self.version,
            "apiUrl": self.api_url,
            "localStoragePrefix": self.local_storage_prefix,
        }

def load_app_config() -> AppConfig:
    port = int(os.getenv("PORT", "3000"))
    cors = os.getenv("CORS_ORIGINS")
    config = AppConfig(
        app_name=os.getenv("APP_NAME", "Workout Tracker Pro"),
        version=os.getenv("APP_VERSION", APP_VERSION),
        environment=os.getenv("ENVIRONMENT", "development"),
        port=port,
        api_url=os.getenv("API_URL", f"http://localhost:{port}/api"),
        supabase_url=os.getenv("SUPABASE_URL"),
        supabase_service_role_key=os.getenv("SUPABASE_SERVICE_ROLE_KEY"),
        supabase_anon_key=os.getenv("SUPABASE_ANON_KEY"),
        local_storage_prefix=os.getenv("LOCAL_STORAGE_PREFIX", "wt_"),
        cache_dir=os.getenv("CACHE_DIR", ".workout_cache"),
        allow_future_dates=_env_flag("ALLOW_FUTURE_DATES"),
    )
    if cors:
        config.cors_origins = [origin.strip() for origin in cors.split(",") if origin.strip()]
    return config

# Global instance
app_config = None

def get_app_config() -> AppConfig:
    """Get the global app config instance"""
    global app_config
    if app_config is None:
        app_config = load_app_config()
    return app_config
