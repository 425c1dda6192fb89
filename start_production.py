#!/usr/bin/env python3
"""
RealEyes intake production startup script
"""

import uvicorn
from realeyes.config import settings


def start_production_server():
    """Start the production server"""
    print("Starting RealEyes intake server...")
    print(f"Environment: {settings.APP_ENV}")
    print(f"Storage driver: {settings.STORAGE_DRIVER}")
    print("=" * 60)

    uvicorn.run(
        "realeyes.main:app",
        host="0.0.0.0",  # Bind to all interfaces
        port=8999,
        reload=False,
        workers=2,
        log_level="info",
        access_log=True
    )


if __name__ == "__main__":
    start_production_server()
