"""Allow ``python -m metina``."""
from .cli import main

main()
