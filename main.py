#!/usr/bin/env python3
"""
DexScan - Main Entry Point
Web server for the scanner and autonomous trader.
"""
import sys

# Import the FastAPI app to make it available at module level
try:
    from dexscan.app import app
    from dexscan.config import settings
except ImportError as e:
    print(f"Failed to import app: {e}")
    app = None

if __name__ == "__main__":
    if app is None:
        print("Error: Failed to load the FastAPI application")
        sys.exit(1)

    import uvicorn
    port = settings.APP_PORT
    print("Starting DexScan...")
    print(f"Web Interface: http://localhost:{port}")
    print(f"API Docs: http://localhost:{port}/docs")
    print("Press Ctrl+C to stop.")

    try:
        uvicorn.run(
            app,
            host="0.0.0.0",
            port=port,
            reload=False
        )
    except Exception as e:
        print(f"Failed to start: {e}")
        sys.exit(1)
