import sys

from adburst.pipelines.run_pipeline import main

sys.exit(main())
