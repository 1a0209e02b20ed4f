import sys

from unipay.cli import main

sys.exit(main())
