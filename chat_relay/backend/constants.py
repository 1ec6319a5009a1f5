APP_NAME = "Chat Relay"
APP_VERSION = "1.0.0"
DEFAULT_CORS_ALLOW_ORIGINS = [
	"http://localhost",
	"http://127.0.0.1",
	"http://localhost:3000",
]
DEFAULT_TRUSTED_HOSTS = [
	"127.0.0.1",
	"localhost",
	"testserver",
]

BACKEND_KINDS = ("agents", "assistants")
DEFAULT_ASSISTANTS_API_VERSION = "2024-05-01-preview"
DEFAULT_POLL_INTERVAL_S = 1.0
DEFAULT_RUN_TIMEOUT_S = 90.0
DEFAULT_TOKEN_LIFETIME_S = 3600
DEFAULT_LOG_LEVEL = "INFO"

COGNITIVE_SERVICES_SCOPE = "https://cognitiveservices.azure.com/.default"
DEFAULT_OAUTH_SCOPES = "https://ai.azure.com/.default openid profile email"
OAUTH_AUTHORITY = "https://login.microsoftonline.com"
OAUTH_HTTP_TIMEOUT_S = 15.0
SPEECH_HTTP_TIMEOUT_S = 10.0

SUPPORTED_LANGUAGES = ("en", "ne")
DEFAULT_LANGUAGE = "en"
