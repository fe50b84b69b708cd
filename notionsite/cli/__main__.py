"""Allow ``python -m notionsite.cli`` execution."""

from notionsite.cli.site import main

main()
