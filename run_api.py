"""Run the provider gateway server."""

import uvicorn

from gateway.api.config import Settings

if __name__ == "__main__":
    settings = Settings()
    uvicorn.run(
        "gateway.api:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
