"""Data models shared by the game and its storage."""
