import copy
import os
import logging
from pathlib import Path
import platform

logger = logging.getLogger(__name__)

class Settings:
    _defaults = {
        "architecture"      : platform.machine(),
        "rootPath"          : f"{str(Path.home())}/xdebsync",
        "repositoriesPath"  : f"{str(Path.home())}/xdebsync/repositories",
        "listsPath"         : f"{str(Path.home())}/xdebsync/lists",
        "repositoriesUrl"   : "https://github.com/thetredev/xdeb-install-repositories/releases/download",
        "repositoriesTag"   : "v1.0.0",
        "timeout"           : 30,     # Seconds, per request
        "retries"           : 3,      # Per request, on connection errors and 429/5xx responses
        "logLevel"          : "INFO",
        "progress"          : True
    }
    _settings = copy.deepcopy(_defaults)
    _providers = [] # type: list[str]

    @staticmethod
    def Init():
        """Revert all settings to their defaults."""
        Settings._settings = copy.deepcopy(Settings._defaults)
        Settings._providers = []

    @staticmethod
    def Parse(config: list):
        """Parse the configuration file and set the settings defined."""
        for line in config:
            line = line.split("#", 1)[0].strip() # Allow for inline comments, but strip them here

            if line.startswith("set "):
                key = line.split("set ", 1)[1].split("=")[0].strip()

                if key in Settings._settings and "=" in line:
                    value = line.split("=", 1)[1].strip()

                    if value.isdigit():
                        Settings._settings[key] = int(value)
                    elif value.lower() in ("true", "false"):
                        Settings._settings[key] = value.lower() == "true"
                    else:
                        Settings._settings[key] = value.strip('"')

                    logger.debug(f"Parsed setting: {key} = {Settings._settings.get(key)}")
                else:
                    logger.warning(f"Unknown setting in configuration file '{line}'")
            elif line.startswith("provider "):
                name = line.split("provider ", 1)[1].strip()

                if name and name not in Settings._providers:
                    Settings._providers.append(name)
                    logger.debug(f"Parsed provider: {name}")

    @staticmethod
    def Architecture() -> str:
        """Get the Architecture used to select the package lists."""
        return str(Settings._settings["architecture"])

    @staticmethod
    def SetArchitecture(architecture: str):
        """Override the Architecture used to select the package lists."""
        Settings._settings["architecture"] = architecture

    @staticmethod
    def GetRootPath() -> str:
        """Get the root path."""
        return os.path.expanduser(str(Settings._settings["rootPath"]))

    @staticmethod
    def RepositoriesPath() -> str:
        """Get the path that synced repositories are written to."""
        return os.path.expanduser(str(Settings._settings["repositoriesPath"]))

    @staticmethod
    def ListsPath() -> str:
        """Get the path that the package lists manifest is cached in."""
        return os.path.expanduser(str(Settings._settings["listsPath"]))

    @staticmethod
    def RepositoriesUrl() -> str:
        """Get the Url of the package lists manifest for the configured tag and Architecture."""
        base = str(Settings._settings["repositoriesUrl"]).rstrip("/")
        return f"{base}/{Settings._settings['repositoriesTag']}/{Settings.Architecture()}"

    @staticmethod
    def Timeout() -> int:
        """Get the timeout in seconds for each request."""
        return int(str(Settings._settings["timeout"]))

    @staticmethod
    def Retries() -> int:
        """Get the number of retries for each request."""
        return int(str(Settings._settings["retries"]))

    @staticmethod
    def LogLevel() -> int:
        """Get the log level used for application logger."""
        level = Settings._settings["logLevel"]
        if isinstance(level, int):
            return level

        return int(logging.getLevelName(str(level).upper()))

    @staticmethod
    def ProgressBarsEnabled() -> bool:
        """Get whether progress bars should be displayed."""
        return bool(Settings._settings["progress"])

    @staticmethod
    def DisableProgressBars():
        """Disable progress bars."""
        Settings._settings["progress"] = False

    @staticmethod
    def Providers() -> list:
        """Get the Providers listed in the configuration file."""
        return list(Settings._providers)
