import sys
from lt.common.errors import ConfigurationError
from lt.common.logger import log
from lt.ui.app import main

# Entry point for `python -m lt`
def run() -> None:
    try:
        main()
    except SystemExit:
        raise
    except ConfigurationError as e:
        log.error(f"Cannot start: {e}")
        print(f"LoadTimer is not configured: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception:
        # Full stack trace, always
        log.exception("Uncaught exception in entrypoint, exiting")
        sys.exit(1)

if __name__ == "__main__":
    run()
