# run_dev.py
"""
Local development launcher for the relay API.
Equivalent to: `uvicorn src.relay.api.main:app --reload --host 0.0.0.0 --port 8000`
"""

import os

import uvicorn

if __name__ == "__main__":
    uvicorn.run(
        "src.relay.api.main:app",
        host=os.getenv("RELAY_HOST", "0.0.0.0"),
        port=int(os.getenv("RELAY_PORT", "8000")),
        reload=True,
    )
