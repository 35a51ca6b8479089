import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent


class Config:
    # Provider credentials and default models
    OPENAI_KEY = os.getenv("OPENAI_KEY", "")
    OPENAI_DEFAULT_MODEL = os.getenv("OPENAI_DEFAULT_MODEL", "gpt-3.5-turbo")
    ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "")
    ANTHROPIC_DEFAULT_MODEL = os.getenv("ANTHROPIC_DEFAULT_MODEL", "claude-3-sonnet-20240229")
    GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY", "")
    GOOGLE_DEFAULT_MODEL = os.getenv("GOOGLE_DEFAULT_MODEL", "gemini-1.5-flash")
    MAX_TOKENS = int(os.getenv("MAX_TOKENS", "2048"))
    TEMPERATURE = float(os.getenv("TEMPERATURE", "0.7"))
    VALIDATE_PROVIDERS_ON_STARTUP = os.getenv("VALIDATE_PROVIDERS_ON_STARTUP", "false").lower() == "true"
    FAILOVER_ENABLED = os.getenv("FAILOVER_ENABLED", "true").lower() == "true"

    # Timeouts for every external call (seconds)
    PROVIDER_TIMEOUT_SECONDS = float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "30.0"))
    CACHE_TIMEOUT_SECONDS = float(os.getenv("CACHE_TIMEOUT_SECONDS", "0.5"))
    NOTIFICATION_TIMEOUT_SECONDS = float(os.getenv("NOTIFICATION_TIMEOUT_SECONDS", "5.0"))

    # Policy and escalation rule files
    POLICY_FILE = os.getenv("POLICY_FILE", str(BASE_DIR / "config" / "policy.yaml"))
    ESCALATION_RULES_FILE = os.getenv("ESCALATION_RULES_FILE", str(BASE_DIR / "config" / "escalation_rules.yaml"))
    ESCALATION_ENABLED = os.getenv("ESCALATION_ENABLED", "true").lower() == "true"
    ESCALATION_THRESHOLD = float(os.getenv("ESCALATION_THRESHOLD", "0.8"))
    NOTIFICATION_WEBHOOK_URL = os.getenv("NOTIFICATION_WEBHOOK_URL", "")

    # Response cache. Empty REDIS_URL keeps the in-process store.
    RESPONSE_CACHE_TTL = int(os.getenv("RESPONSE_CACHE_TTL", "3600"))
    CACHE_MAX_ITEMS = int(os.getenv("CACHE_MAX_ITEMS", "1000"))
    REDIS_URL = os.getenv("REDIS_URL", "")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE = os.getenv("LOG_FILE", "data/buddyguard_audit.jsonl")
    HASH_SALT = os.getenv("HASH_SALT", "default-salt-change-in-prod")
    ADMIN_TOKEN = os.getenv("ADMIN_TOKEN", "")
    # Allowed origins. Comma separated list; default "*" for dev.
    ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*")

config = Config()
