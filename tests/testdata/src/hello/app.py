"""Hello world for the templates package."""

import sys

from templates import Set


def main() -> None:
    template_set = Set()
    template_set.parse("templates")
    template_set.execute("root.html", sys.stdout, None)


if __name__ == "__main__":
    main()
