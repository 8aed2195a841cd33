import sys

from arabic_text_extractor.main import main

sys.exit(main())
