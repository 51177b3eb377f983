import os

import uvicorn

from noviq.main import app

if __name__ == "__main__":
    uvicorn.run(
        app,
        host=os.getenv("NOVIQ_HOST", "0.0.0.0"),
        port=int(os.getenv("NOVIQ_PORT", "8000")),
    )
