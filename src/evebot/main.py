from __future__ import annotations

from evebot.cli import main


if __name__ == "__main__":
    raise SystemExit(main())
