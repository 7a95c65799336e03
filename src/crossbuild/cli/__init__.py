"""Command-line entry point and cargo argument inspection."""
