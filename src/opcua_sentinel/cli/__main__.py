"""
Allow running uactl as a module: python -m opcua_sentinel.cli
"""

import sys
from .uactl import main

if __name__ == "__main__":
    sys.exit(main())
