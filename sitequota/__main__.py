"""
Run the quota API: python -m sitequota
"""
import os

import uvicorn


if __name__ == "__main__":
    uvicorn.run(
        "sitequota.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=False,
        log_level="info",
        access_log=True,
    )
