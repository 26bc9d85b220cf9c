"""Allows ``python -m site_crawler <url>``."""

from .cli import main

main()
