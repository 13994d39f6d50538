import os

import uvicorn


def main():
    host = os.environ.get("FACTLOG_HOST", "127.0.0.1")
    port = int(os.environ.get("FACTLOG_PORT", "8000"))
    # Auto-reload is for local development only
    reload = os.environ.get("FACTLOG_RELOAD", "").lower() in ("1", "true", "yes")

    print(f"Starting factlog API server on {host}:{port}")
    print(f"Docs available at: http://{host}:{port}/docs")

    uvicorn.run("factlog.api.server:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    main()
