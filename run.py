#!/usr/bin/env python3
"""
Title Improver API startup script
"""
import uvicorn
from title_improver.core.config import get_settings

if __name__ == "__main__":
    settings = get_settings()

    uvicorn.run(
        "title_improver.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
