"""Main entry point for the bot."""
from versebot.app import main

if __name__ == "__main__":
    main()
