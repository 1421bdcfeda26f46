#!/usr/bin/env python3
"""
Run the Distress Early Warning API.
Set OPENAI_API_KEY in environment (or .env) so escalations get a summary; without it clusters
are still resolved but no alert is sent. Alerts go by email when ALERT_EMAIL,
ALERT_EMAIL_PASSWORD and ADMIN_EMAIL are set, otherwise to ALERT_WEBHOOK_URL if set.
"""
import os

from dotenv import load_dotenv

load_dotenv()

import uvicorn  # noqa: E402

if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8000))
    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=port,
        reload=os.environ.get("RELOAD", "0") == "1",
    )
