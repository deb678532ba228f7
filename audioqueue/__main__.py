"""Allow running AudioQueue with `python -m audioqueue`."""

from audioqueue.main import main

if __name__ == "__main__":
    main()
