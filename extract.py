#!/usr/bin/env python3
"""
Blackout Breaker CLI

Run from a checkout without installing:
    python extract.py --input ./pdfs/ --output ./output/
"""

from blackout_breaker.cli import main


if __name__ == "__main__":
    main()
