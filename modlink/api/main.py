"""Auth site entry point"""

import uvicorn

from modlink.api.app import create_app
from modlink.core.config import get_settings

app = create_app()


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "modlink.api.main:app",
        host=settings.host,
        port=settings.port,
        log_config=None,
        reload=settings.is_development,
    )


if __name__ == "__main__":
    main()
