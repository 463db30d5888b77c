"""Synchronise xdeb package lists from APT and custom repositories."""

import sys
import logging
from logging.handlers import RotatingFileHandler
import os
import time
from pathlib import Path
import shutil
import datetime

import click
from filelock import FileLock
from tendo import singleton

from xdebsync.classes import (
    Downloader,
    Fetcher,
    LogFilter,
    Synchroniser,
    ParsePackageLists
)
from xdebsync.errors import XdebSyncError
from xdebsync.settings import Settings

logger = logging.getLogger(__name__)

appLockFile = "xdebsync-lock"
defaultConfig = Path(__file__).parent / "xdebsync.conf.example"

logFileName = "xdebsync.log"
logFileBytes = 50 * 1024 * 1024
logFileBackups = 3
dateFormat = "%Y-%m-%d %H:%M:%S"
consoleFormat = "[%(asctime)s] %(levelname)s: %(message)s"
fileFormat = "[%(asctime)s] %(levelname)s %(name)s [%(threadName)s]: %(message)s"

@click.command()
@click.version_option(package_name="xdebsync")
@click.argument("providers", nargs=-1, type=click.STRING)
@click.option("--conf", default=f"{Settings.GetRootPath()}/xdebsync.conf", help="Path to configuration file.", type=click.STRING)
@click.option("--arch", default=None, help="Architecture of the package lists. Overrides the configuration file.", type=click.STRING)
@click.option("--list", "listProviders", is_flag=True, default=False, help="List the available Providers and exit.", type=click.BOOL)
@click.option("--no-progress", is_flag=True, default=False, help="Do not display progress bars.", type=click.BOOL)
def main(providers: tuple, conf: str, arch: str, listProviders: bool, no_progress: bool):
    """Synchronise package lists for PROVIDERS, or all Providers if none are given."""

    me = singleton.SingleInstance() # will sys.exit(-1) if other instance is running

    startTime = time.perf_counter()

    ConfigureLogger()

    logger.info("Starting Xdebsync process")

    configData = GetConfig(conf)

    # Parse the configuration file
    Settings.Parse(configData)
    logging.getLogger().setLevel(Settings.LogLevel())

    # Ensure that command line arguments override the configuration file
    if arch:
        Settings.SetArchitecture(arch)

    if no_progress:
        Settings.DisableProgressBars()

    providerNames = list(providers) or Settings.Providers()

    Path(Settings.GetRootPath()).mkdir(parents=True, exist_ok=True)
    Path(Settings.ListsPath()).mkdir(parents=True, exist_ok=True)
    Path(Settings.RepositoriesPath()).mkdir(parents=True, exist_ok=True)

    try:
        with FileLock(f"{Settings.GetRootPath()}/{appLockFile}.lock"):
            if listProviders:
                PerformList()
            else:
                PerformSync(providerNames)
    except XdebSyncError as e:
        logger.error(str(e))
        sys.exit(1)

    logger.info(f"Xdebsync completed in {datetime.timedelta(seconds=round(time.perf_counter() - startTime))}")

def PerformList():
    """Print the Providers listed in the package lists manifest."""
    lists = ParsePackageLists(Settings.ListsPath(), Settings.RepositoriesUrl(), NewDownloader())

    for provider in lists.Providers:
        kind = "custom" if provider.Custom else "apt"
        click.echo(f"{provider.Name} ({kind}): {provider.Url} [{' '.join(provider.Distributions)}] {' '.join(provider.Components)}")

def PerformSync(providerNames: list):
    """Download the package lists manifest and synchronise the requested Providers."""
    downloader = NewDownloader()

    lists = ParsePackageLists(Settings.ListsPath(), Settings.RepositoriesUrl(), downloader)

    if providerNames:
        logger.info(f"Processing Providers: {', '.join(providerNames)}")
    else:
        logger.info(f"Processing {len(lists.Providers)} Providers...")

    synchroniser = Synchroniser(
        Settings.RepositoriesPath(),
        fetcher=Fetcher(Settings.RepositoriesPath(), downloader),
        progress=Settings.ProgressBarsEnabled()
    )
    operations = synchroniser.Sync(lists, providerNames)

    logger.info(f"Processed {operations} repository indices")

def NewDownloader() -> Downloader:
    """Create a Downloader using the configured timeout and retries."""
    return Downloader(timeout=Settings.Timeout(), retries=Settings.Retries())

def ConfigureLogger(logPath: str = None, consoleLevel: int = logging.INFO) -> list:
    """
        Send log records to stdout and to a rotating file under the root path.

        Debug output from sync jobs only goes to the file; the console shows
        records at consoleLevel and above. Returns the handlers added.
    """
    logPath = logPath or os.path.join(Settings.GetRootPath(), logFileName)
    os.makedirs(os.path.dirname(logPath) or ".", exist_ok=True)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(logging.Formatter(consoleFormat, dateFormat))
    console.addFilter(LogFilter(consoleLevel))

    logFile = RotatingFileHandler(logPath, maxBytes=logFileBytes, backupCount=logFileBackups)
    logFile.setFormatter(logging.Formatter(fileFormat, dateFormat))

    root = logging.getLogger()
    root.setLevel(Settings.LogLevel())
    for handler in (console, logFile):
        root.addHandler(handler)

    return [console, logFile]

def GetConfig(conf: str) -> list:
    """Attempt to read the configuration file using the path provided.

       If the configuration file is not found, a default configuration
       is written using the path provided.
    """
    if not os.path.isfile(conf):
        logger.info("Configuration file not found. Creating default...")
        CreateConfig(conf)

    # Read the configuration file
    with open(conf) as f:
        configData = list(filter(None, f.read().splitlines()))

    logger.debug(f"Read {len(configData)} lines from config")
    return configData

def CreateConfig(conf: str):
    """Create a new configuration file using the default provided.

       If the destination directory for the file does not exist,
       the application will exit.
    """

    path = Path(conf)
    if not os.path.isdir(path.parent.absolute()):
        logger.error("Path for configuration file not valid. Application exiting.")
        sys.exit(1)

    shutil.copyfile(defaultConfig, conf)

    logger.info(f"Configuration file created for first use at '{conf}'.")
