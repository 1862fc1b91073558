#!/usr/bin/env python3
"""
Development server launcher for the SketchForge API.

Credentials are read from the environment at startup (see src/config/config.yaml
for the variable names). For production, run the app under a proper ASGI deployment.
"""

import logging
import uvicorn
import sys
from pathlib import Path

# Make the `src` package importable when launched from anywhere
project_root = Path(__file__).parent
src_path = project_root / "src"
sys.path.insert(0, str(project_root))

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    print("Starting SketchForge API Development Server")
    print(f"Project root: {project_root}")
    print("Server will be available at: http://localhost:8000")
    print("API documentation at: http://localhost:8000/docs")
    print("\n" + "="*50 + "\n")

    uvicorn.run(
        "src.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,     # development only
        reload_dirs=[str(src_path)],
        log_level="info"
    )
