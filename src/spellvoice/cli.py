from __future__ import annotations

import sys

from spellvoice.extract_spelling import main as extract_main
from spellvoice.recognize_word import main as recognize_main


def main() -> int | None:
    if len(sys.argv) > 1 and sys.argv[1] == "extract":
        # `spellvoice extract --word cat ...` -> extract parser gets `--word cat ...`
        sys.argv = [sys.argv[0], *sys.argv[2:]]
        return extract_main()
    return recognize_main()


if __name__ == "__main__":
    raise SystemExit(main())
