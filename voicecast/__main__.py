"""Allow running voicecast with `python -m voicecast`."""

from voicecast.main import main

if __name__ == "__main__":
    main()
