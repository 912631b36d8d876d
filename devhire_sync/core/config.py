import logging
import os
from decimal import Decimal
from typing import Optional, Dict
from dotenv import load_dotenv
from pydantic import BaseModel

ENV_PREFIX = "DEVHIRE_"

class Settings(BaseModel):
    api_base_url: str = "http://localhost:5000/api"
    api_token: Optional[str] = None
    poll_interval_ms: int = 30000
    request_timeout: float = 10.0 # seconds, per backend call
    withdrawal_fee_rate: Decimal = Decimal("0.10")
    autostart_polling: bool = False
    log_level: str = "INFO"

def _read_env(environ: Dict[str, str]) -> Dict[str, str]:
    values = {}
    for field_name in Settings.model_fields:
        raw = environ.get(ENV_PREFIX + field_name.upper())
        if raw is not None and raw != "":
            values[field_name] = raw
    return values

def load_settings(environ: Optional[Dict[str, str]] = None, env_file: Optional[str] = None) -> Settings:
    """Build Settings from DEVHIRE_* environment variables.

    A .env file (project root by default) is loaded first; variables already
    present in the environment take precedence over it.
    """
    if environ is None:
        if env_file is None:
            project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
            env_file = os.path.join(project_root, ".env")
        load_dotenv(env_file, override=False)
        environ = dict(os.environ)
    return Settings(**_read_env(environ))

_settings: Optional[Settings] = None

def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings

def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=(level or get_settings().log_level).upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
