"""Run the API under uvicorn, configured from the environment."""

import os
from typing import Dict

import uvicorn

_TRUE = {"1", "true", "yes", "on"}

# uvicorn keyword -> environment variable
_TLS_ENV = {
    "ssl_certfile": "SSL_CERTFILE",
    "ssl_keyfile": "SSL_KEYFILE",
    "ssl_ca_certs": "SSL_CA_CERTS",
    "ssl_keyfile_password": "SSL_KEYFILE_PASSWORD",
}


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in _TRUE


def tls_options() -> Dict[str, str]:
    return {key: os.environ[env] for key, env in _TLS_ENV.items() if os.getenv(env)}


def main() -> None:
    reload_enabled = _flag("RELOAD")
    options = dict(
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=reload_enabled,
        log_level=os.getenv("LOG_LEVEL", "info"),
        proxy_headers=True,
        forwarded_allow_ips=os.getenv("FORWARDED_ALLOW_IPS", "*"),
        **tls_options(),
    )
    # uvicorn ignores workers when reload is on
    if not reload_enabled:
        options["workers"] = int(os.getenv("WEB_CONCURRENCY", "1"))
    uvicorn.run("arsipdb.main:app", **options)


if __name__ == "__main__":
    main()
