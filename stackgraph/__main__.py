"""Entry point for `python -m stackgraph`.

Usage:
    python -m stackgraph
    uv run python -m stackgraph
"""

from __future__ import annotations

import asyncio

from stackgraph.app import main

asyncio.run(main())
