"""Allow ``python -m abi_to_mcp``."""

from __future__ import annotations

from .cli import main

raise SystemExit(main())
