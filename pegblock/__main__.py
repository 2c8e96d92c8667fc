# pegblock/__main__.py
import sys

from .pegc import main

sys.exit(main())
