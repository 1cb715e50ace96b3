import os
import sys
import uvicorn
from lt.common.logger import adopt_uvicorn_logs
from lt.proxy.app import log


# Entry point for `python -m lt.proxy`
def main():
    host = os.environ.get("LOADTIMER_PROXY_HOST", "127.0.0.1")
    port = int(os.environ.get("LOADTIMER_PROXY_PORT", "8888"))
    adopt_uvicorn_logs(log)
    log.info(f"Starting proxy on {host}:{port}")
    try:
        # log_config=None keeps uvicorn from replacing the handlers adopted above
        uvicorn.run("lt.proxy.app:app", host=host, port=port, log_config=None)
    except Exception:
        log.exception("Proxy crashed")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
