"""Run the API under uvicorn, configured from the environment."""

import logging
import os
from typing import Dict

import uvicorn

_TRUTHY = {"1", "true", "yes", "on"}

_SSL_ENV = {
    "SSL_CERTFILE": "ssl_certfile",
    "SSL_KEYFILE": "ssl_keyfile",
    "SSL_CA_CERTS": "ssl_ca_certs",
    "SSL_KEYFILE_PASSWORD": "ssl_keyfile_password",
}


def _ssl_options() -> Dict[str, str]:
    return {option: os.environ[env] for env, option in _SSL_ENV.items() if os.getenv(env)}


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def main() -> None:
    log_level = os.getenv("LOG_LEVEL", "info")
    _configure_logging(log_level)

    uvicorn.run(
        "traindb.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("RELOAD", "false").lower() in _TRUTHY,
        log_level=log_level,
        proxy_headers=True,
        forwarded_allow_ips=os.getenv("FORWARDED_ALLOW_IPS", "*"),
        **_ssl_options(),
    )


if __name__ == "__main__":
    main()
