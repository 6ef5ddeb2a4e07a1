#!/usr/bin/env python
"""Start the local Ozonator API for the desktop shell."""
import os

import uvicorn
from dotenv import load_dotenv

if __name__ == "__main__":
    load_dotenv()

    # Local only; the shell talks to it over loopback
    host = os.environ.get("HOST", "127.0.0.1")
    port = int(os.environ.get("PORT", 8765))

    print(f"Starting Ozonator API on {host}:{port}")

    uvicorn.run(
        "ozonator.main:build_default_app",
        factory=True,
        host=host,
        port=port,
        log_level="info"
    )
