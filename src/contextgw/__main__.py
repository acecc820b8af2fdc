"""Allow ``python -m contextgw``."""

from contextgw.cli import main

raise SystemExit(main())
