#!/usr/bin/env python
"""
Entry point for the WhatsApp intake bot.
Starts the FastAPI server with uvicorn.
"""

import uvicorn

if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=False,
        log_level="info",
    )
