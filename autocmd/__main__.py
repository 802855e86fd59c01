import sys

from autocmd.cli import main

sys.exit(main())
