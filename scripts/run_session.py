#!/usr/bin/env python3
"""Entry point for a paper-trading session.

Usage::

    python scripts/run_session.py --coins KRW-BTC KRW-ETH
    python scripts/run_session.py --restore
"""

from __future__ import annotations

import sys


def main() -> None:
    from papertrader.app import main as run

    sys.exit(run())


if __name__ == "__main__":
    main()
