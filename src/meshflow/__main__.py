"""Run with: python -m meshflow [boundary-file]"""
import sys

from meshflow.main import main

if __name__ == "__main__":
    sys.exit(main())
