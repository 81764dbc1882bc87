"""
main.py: Server launcher and entry point.

Run this file to start the desk matcher API:

    python main.py

The desk finder UI is a separate streamlit app:

    streamlit run dashboard/app.py

This file does NOT contain application logic. See app.py for the FastAPI
application, service wiring, and startup sequence.

Direct uvicorn usage:
    uvicorn app:app --reload
"""

from __future__ import annotations

import uvicorn


HOST = "127.0.0.1"
PORT = 8000


def main() -> None:
    """Start the desk matcher server."""
    print("=" * 60)
    print("  Workspace Desk Matcher")
    print("=" * 60)
    print(f"  Server   : http://{HOST}:{PORT}")
    print(f"  Match API: http://{HOST}:{PORT}/api/match")
    print(f"  API docs : http://{HOST}:{PORT}/docs")
    print("=" * 60)
    print("  Press CTRL+C to stop\n")

    # Blocks until CTRL+C
    uvicorn.run(
        "app:app",
        host=HOST,
        port=PORT,
        reload=True,
        log_level="info",
    )


if __name__ == "__main__":
    main()
