"""
To-do API configuration. All values come from the environment; only API keys lack defaults.
Addresses point at the authorizer and directory REST gateways.
"""
import os


def _env_or(name: str, default: str) -> str:
    value = os.environ.get(name, "")
    return value if value else default


def _first_env(*names: str) -> str:
    for name in names:
        value = os.environ.get(name, "")
        if value:
            return os.path.expandvars(value)
    return ""


# Authorizer (policy decision point)
AUTHORIZER_ADDRESS = _env_or("ASERTO_AUTHORIZER_SERVICE_URL", "https://localhost:8383").rstrip("/")
AUTHORIZER_API_KEY = os.environ.get("ASERTO_AUTHORIZER_API_KEY", "")
AUTHORIZER_CA_CERT_PATH = _first_env(
    "ASERTO_AUTHORIZER_CA_CERT_PATH",
    "ASERTO_AUTHORIZER_GRPC_CA_CERT_PATH",
    "ASERTO_CA_CERT_PATH",
    "ASERTO_GRPC_CA_CERT_PATH",
)

# Directory (identities, users, ownership relations)
DIRECTORY_ADDRESS = _env_or("ASERTO_DIRECTORY_SERVICE_URL", "https://localhost:9393").rstrip("/")
DIRECTORY_API_KEY = os.environ.get("ASERTO_DIRECTORY_API_KEY", "")
DIRECTORY_CA_CERT_PATH = _first_env(
    "ASERTO_DIRECTORY_CA_CERT_PATH",
    "ASERTO_DIRECTORY_GRPC_CA_CERT_PATH",
    "ASERTO_CA_CERT_PATH",
    "ASERTO_GRPC_CA_CERT_PATH",
)

TENANT_ID = os.environ.get("ASERTO_TENANT_ID", "")

# Policy instance and the root prefix of every policy path (todoApp.GET.todos, ...)
POLICY_INSTANCE_NAME = os.environ.get("ASERTO_POLICY_INSTANCE_NAME", "")
POLICY_INSTANCE_LABEL = _env_or("ASERTO_POLICY_INSTANCE_LABEL", POLICY_INSTANCE_NAME)
POLICY_ROOT = _env_or("ASERTO_POLICY_ROOT", "todoApp")
POLICY_DECISION = "allowed"

# OIDC provider. Access tokens must carry AUDIENCE in aud.
OIDC_ISSUER = _env_or("ISSUER", "https://citadel.demo.aserto.com/dex").rstrip("/")
OIDC_AUDIENCE = _env_or("AUDIENCE", "citadel-app")
OIDC_JWKS_URL = _env_or("JWKS_URL", "https://citadel.demo.aserto.com/dex/keys")
JWT_ALGORITHMS = [a.strip() for a in _env_or("JWT_ALGORITHMS", "RS256").split(",") if a.strip()]

# Seconds a fetched key set stays fresh
JWKS_CACHE_LIFESPAN = int(_env_or("JWKS_CACHE_LIFESPAN", "300"))

# Bound on every outbound call (JWKS, directory, authorizer)
UPSTREAM_TIMEOUT_SECONDS = float(_env_or("UPSTREAM_TIMEOUT_SECONDS", "5"))

DATABASE_URL = _env_or("TODO_DATABASE_URL", "sqlite:///./todo.db")

HOST = _env_or("TODO_HOST", "0.0.0.0")
PORT = int(_env_or("TODO_PORT", "3001"))
SHUTDOWN_GRACE_SECONDS = int(_env_or("SHUTDOWN_GRACE_SECONDS", "5"))

LOG_LEVEL = _env_or("LOG_LEVEL", "INFO").upper()
