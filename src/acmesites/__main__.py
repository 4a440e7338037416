"""Allow ``python -m acmesites``."""

from acmesites.cli.main import main

main()
