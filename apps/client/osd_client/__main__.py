from __future__ import annotations

from osd_client.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
