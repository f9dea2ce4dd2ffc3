import os

# Set before party_bot.config is imported so the tests never touch the bot's
# own database
os.environ["DATABASE_URI"] = "sqlite:///party_test.db"
os.environ.setdefault("DISCORD_API_KEY", "test")
