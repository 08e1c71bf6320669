"""
Run the chat server with uvicorn on HOST/PORT from the environment.
"""

import uvicorn

from halotalk.logging import logger
from halotalk.settings import app_settings
from halotalk.uvicorn_filters import install_access_log_filter


def main(host: str | None = None, port: int | None = None) -> None:
    host = host or app_settings.HOST
    port = port or app_settings.PORT

    install_access_log_filter()
    logger.info(f"HaloTalk server is running on port {port}")
    logger.info(f"Visit http://localhost:{port} to start chatting")

    # log_config=None keeps the handlers configured by halotalk.logging
    uvicorn.run(
        "halotalk:application",
        factory=True,
        host=host,
        port=port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
