"""Run the stakefit CLI with ``python -m stakefit.accountability``."""

from .cli import main

if __name__ == "__main__":
    main()
