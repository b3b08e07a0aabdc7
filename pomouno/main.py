"""
Entry point: start the PomoUno API.

Usage:
    python -m pomouno.main
    uvicorn pomouno.api.app:app --host 127.0.0.1 --port 8766 --reload
"""

import uvicorn
from .config import config


def main():
    uvicorn.run(
        "pomouno.api.app:app",
        host=config.api_host,
        port=config.api_port,
        reload=False,
        log_level=config.log_level,
    )


if __name__ == "__main__":
    main()
