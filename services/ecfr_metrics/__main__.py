import sys

from services.ecfr_metrics.main import main


sys.exit(main())
