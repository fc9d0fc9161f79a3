import os

import uvicorn


def main():
    uvicorn.run(
        "bona.main:app",
        host=os.getenv("BONA_HOST", "127.0.0.1"),
        port=int(os.getenv("BONA_PORT", "8000")),
        reload=os.getenv("BONA_RELOAD", "false").lower() == "true",
    )


if __name__ == "__main__":
    main()
