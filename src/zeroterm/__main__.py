# =============================================================================
# zeroterm Entry Point for `python -m zeroterm`
# =============================================================================

import sys

from zeroterm.app import main

if __name__ == "__main__":
    sys.exit(main())
