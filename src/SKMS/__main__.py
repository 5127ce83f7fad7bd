# SKMS/__main__.py
# Entry point for `python -m SKMS`; same commands as the `skms` console script.
from .cli import main

if __name__ == "__main__":
    main()
