"""Entry point wrapper for ``python -m ear_trainer``.

Forwards to :func:`ear_trainer.main` so ``python -m ear_trainer`` and the
installed ``ear-trainer`` console script behave identically.
"""

from . import main

if __name__ == "__main__":
    main()
