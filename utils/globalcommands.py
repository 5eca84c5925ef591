import os

from discord.ext import commands
from dotenv import load_dotenv

load_dotenv()
env_write = ["TOKEN=YOUR_BOT_TOKEN",
             "OWNER_ID=YOUR_ID_HERE",
             "PREFIX=r!",
             "PG_USER=POSTGRES_USERNAME",
             "PG_PASSWORD=POSTGRES_PASSWORD",
             "PG_DATABASE=POSTGRES_DATABASE",
             "PG_HOST=POSTGRES_HOST",
             "GUILD_DATA_DIR=./guild_data",
             "REMINDER_SCAN_INTERVAL=5"]
default_env = ["YOUR_BOT_TOKEN",
               "YOUR_ID_HERE",
               "POSTGRES_USERNAME",
               "POSTGRES_PASSWORD",
               "POSTGRES_DATABASE",
               "POSTGRES_HOST"]
pg_keys = ("PG_USER", "PG_PASSWORD", "PG_DATABASE", "PG_HOST")

DEFAULT_PREFIX = "r!"
DEFAULT_DATA_DIR = "./guild_data"
DEFAULT_SCAN_INTERVAL = 5.0


class GlobalCMDS:

    def __init__(self, bot: commands.AutoShardedBot = None):
        self.version = "v1.0.0"
        self.bot = bot

    def init_env(self):
        if not os.path.exists('.env'):
            with open('./.env', 'w') as f:
                f.write("\n".join(env_write))
                return False
        return True

    def env_check(self, key: str):
        if not self.init_env() or os.getenv(key) in default_env:
            return False
        return os.getenv(key)

    def get_env(self, key: str, default=None):
        value = os.getenv(key)
        if not value or value in default_env:
            return default
        return value

    def pg_credentials(self):
        credentials = {
            "user": self.get_env("PG_USER"),
            "password": self.get_env("PG_PASSWORD"),
            "database": self.get_env("PG_DATABASE"),
            "host": self.get_env("PG_HOST"),
        }
        if not all(credentials.values()):
            return None
        return credentials

    @property
    def prefix(self) -> str:
        return self.get_env("PREFIX", DEFAULT_PREFIX)

    @property
    def data_dir(self) -> str:
        return self.get_env("GUILD_DATA_DIR", DEFAULT_DATA_DIR)

    @property
    def scan_interval(self) -> float:
        try:
            interval = float(self.get_env("REMINDER_SCAN_INTERVAL", DEFAULT_SCAN_INTERVAL))
        except ValueError:
            return DEFAULT_SCAN_INTERVAL
        return interval if interval > 0 else DEFAULT_SCAN_INTERVAL

