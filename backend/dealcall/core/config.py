import os
from dotenv import load_dotenv

load_dotenv()

APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", 8000))

# Used to tell operators where the platform should send webhook events
PUBLIC_APP_URL = os.getenv("PUBLIC_APP_URL", f"http://localhost:{API_PORT}")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./dealcall.db")
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() == "true"

# Vapi
VAPI_BASE_URL = os.getenv("VAPI_BASE_URL", "https://api.vapi.ai")
VAPI_PRIVATE_API_KEY = os.getenv("VAPI_PRIVATE_API_KEY")
VAPI_PUBLIC_API_KEY = os.getenv("VAPI_PUBLIC_API_KEY")
VAPI_PHONE_NUMBER_ID = os.getenv("VAPI_PHONE_NUMBER_ID")

# Post-call analysis (OpenRouter speaks the OpenAI API)
OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY")
OPENROUTER_BASE_URL = os.getenv("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1")
ANALYSIS_MODEL = os.getenv("ANALYSIS_MODEL", "openai/gpt-4o-mini")

# Metorial calendar broker
METORIAL_API_KEY = os.getenv("METORIAL_API_KEY")
METORIAL_MCP_URL = os.getenv("METORIAL_MCP_URL", "https://mcp.metorial.com")
METORIAL_GCALENDAR_ID = os.getenv("METORIAL_GCALENDAR_ID")
METORIAL_OAUTH_SESSION_ID = os.getenv("METORIAL_OAUTH_SESSION_ID")
