"""Classes for abstraction and use with Xdebsync."""

import os
import logging
from dataclasses import dataclass
from multiprocessing.pool import ThreadPool
from urllib.parse import urlsplit

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry
import tqdm
import yaml

from xdebsync.errors import (
    DownloadError,
    DecodeError,
    IndexFormatError,
    ManifestError,
    UnknownProviderError
)
from xdebsync.helpers import (
    CompressionFormat,
    DecompressFile,
    DecompressRemote,
    WriteFile,
    COMPRESSED_SUFFIX
)

logger = logging.getLogger(__name__)

USER_AGENT = "xdebsync"

class Provider:
    """Represents a Provider as defined in the package lists manifest."""

    def __init__(self, name: str, url: str, custom: bool = False, architecture: str = "", components: list = None, distributions: list = None):
        """Initialises a Provider. Trailing slashes are removed from the Url."""
        if not name:
            raise ManifestError("Provider without a name")
        if not url:
            raise ManifestError(f"Provider {name} has no url")

        self._name = str(name)
        self._url = str(url).rstrip("/")
        self._custom = bool(custom)
        self._architecture = str(architecture or "")
        self._components = [str(x) for x in components or []] # type: list[str]
        self._distributions = [str(x) for x in distributions or []] # type: list[str]

    @staticmethod
    def FromDict(data: dict) -> "Provider":
        """Create a Provider from an entry of the manifest's "providers" list."""
        if not isinstance(data, dict):
            raise ManifestError(f"Malformed provider entry '{data}'")

        for key in ("components", "dists"):
            if data.get(key) is not None and not isinstance(data.get(key), list):
                raise ManifestError(f"Provider {data.get('name')}: '{key}' must be a list")

        return Provider(
            data.get("name"),
            data.get("url"),
            custom=data.get("custom", False),
            architecture=data.get("architecture", ""),
            components=data.get("components"),
            distributions=data.get("dists")
        )

    def Jobs(self) -> list:
        """Get a SyncJob for each Distribution and Component of this Provider."""
        return [SyncJob(self, distribution, component) for distribution in self._distributions for component in self._components]

    @property
    def Name(self) -> str:
        """Gets the name of the Provider."""
        return self._name

    @property
    def Url(self) -> str:
        """Gets the base Url of the Provider."""
        return self._url

    @property
    def Custom(self) -> bool:
        """Gets whether files are downloaded directly instead of parsed from an Index."""
        return self._custom

    @property
    def Architecture(self) -> str:
        """Gets the binary Architecture of the Provider."""
        return self._architecture

    @property
    def Components(self) -> list:
        """Gets the Components of the Provider."""
        return self._components

    @property
    def Distributions(self) -> list:
        """Gets the Distributions of the Provider."""
        return self._distributions

    def __repr__(self):
        return f"Provider({self._name!r}, {self._url!r}, custom={self._custom})"

class PackageLists:
    """The package lists manifest: an ordered list of Providers."""

    def __init__(self, providers: list):
        names = [] # type: list[str]
        for provider in providers:
            if provider.Name in names:
                raise ManifestError(f"Provider {provider.Name} is defined more than once")
            names.append(provider.Name)

        self._providers = list(providers) # type: list[Provider]

    @staticmethod
    def Parse(contents) -> "PackageLists":
        """Parse the YAML document of a package lists manifest."""
        try:
            document = yaml.safe_load(contents)
        except yaml.YAMLError as e:
            raise ManifestError(f"Package lists are not valid YAML: {e}") from e

        if not document:
            return PackageLists([])

        if not isinstance(document, dict) or not isinstance(document.get("providers") or [], list):
            raise ManifestError("Package lists must contain a list of 'providers'")

        return PackageLists([Provider.FromDict(x) for x in document.get("providers") or []])

    @property
    def Providers(self) -> list:
        """Gets the Providers in manifest order."""
        return self._providers

    @property
    def Names(self) -> list:
        """Gets the names of the Providers in manifest order."""
        return [x.Name for x in self._providers]

@dataclass(frozen=True)
class SyncJob:
    """A single Distribution and Component of a Provider to synchronise."""
    Provider: Provider
    Distribution: str
    Component: str

    def Directory(self, rootPath: str) -> str:
        """Get the directory that files for this job are written to."""
        return os.path.join(rootPath, self.Provider.Name, self.Distribution)

    def SnapshotPath(self, rootPath: str) -> str:
        """Get the path of the compressed snapshot written for this job."""
        return os.path.join(self.Directory(rootPath), f"{self.Component}.yaml{COMPRESSED_SUFFIX}")

    def __str__(self):
        return f"{self.Provider.Name}/{self.Distribution}: {self.Component}"

class PackageEntry:
    """A package listed in a Packages Index."""

    def __init__(self, name: str, version: str, url: str, sha256: str):
        for field, value in (("name", name), ("version", version), ("url", url), ("sha256", sha256)):
            if not isinstance(value, str):
                raise TypeError(f"PackageEntry {field} must be a str, not {type(value).__name__}")

        self._name = name
        self._version = version
        self._url = url
        self._sha256 = sha256

    @property
    def Name(self) -> str:
        return self._name

    @property
    def Version(self) -> str:
        return self._version

    @property
    def Url(self) -> str:
        """Gets the absolute download Url of the package."""
        return self._url

    @property
    def Sha256(self) -> str:
        return self._sha256

    def ToDict(self) -> dict:
        return {
            "name": self._name,
            "version": self._version,
            "url": self._url,
            "sha256": self._sha256
        }

    def __eq__(self, other):
        if not isinstance(other, PackageEntry):
            return NotImplemented
        return self.ToDict() == other.ToDict()

    def __repr__(self):
        return f"PackageEntry({self._name!r}, {self._version!r})"

class RepositorySnapshot:
    """The packages of a single Distribution and Component of a Provider."""

    def __init__(self, entries: list = None):
        self._entries = list(entries or []) # type: list[PackageEntry]

    @property
    def Entries(self) -> list:
        return self._entries

    def Serialise(self) -> bytes:
        """Serialise the snapshot as a YAML document with a top level "xdeb" key."""
        document = {"xdeb": [x.ToDict() for x in self._entries]}
        return yaml.safe_dump(document, sort_keys=False, default_flow_style=False).encode("utf-8")

    def Write(self, path: str) -> str:
        """
            Write the compressed snapshot to a path ending in ".zst".

            Any existing file is replaced in a single step.
        """
        if path.endswith(COMPRESSED_SUFFIX):
            path = path[:-len(COMPRESSED_SUFFIX)]

        return WriteFile(path, self.Serialise(), True)

    @staticmethod
    def Load(path: str) -> "RepositorySnapshot":
        """Read a compressed snapshot from disk."""
        try:
            document = yaml.safe_load(DecompressFile(path)) or {}
        except yaml.YAMLError as e:
            raise DecodeError(f"Invalid snapshot {path}: {e}") from e

        if not isinstance(document, dict):
            raise DecodeError(f"Invalid snapshot {path}: expected a mapping")

        items = document.get("xdeb") or []
        if not isinstance(items, list) or not all(isinstance(x, dict) for x in items):
            raise DecodeError(f"Invalid snapshot {path}: \"xdeb\" must be a list of mappings")

        return RepositorySnapshot([
            PackageEntry(
                str(x.get("name", "")),
                str(x.get("version", "")),
                str(x.get("url", "")),
                str(x.get("sha256", ""))
            ) for x in items
        ])

    def __len__(self):
        return len(self._entries)

class Index:
    """
        Represents the contents of a Packages Index.

        Section 1.4 of the DebianRepository Format document states:
        - "[The files] consist of multiple paragraphs ... and the additional
          fields defined in this section"
        - https://wiki.debian.org/DebianRepository/Format#A.22Packages.22_Indices

        Only the fields required to install a package are read, all other
        fields are ignored. Fields missing from a paragraph are left empty.
    """

    _fields = {
        "Package:" : "name",
        "Version:" : "version",
        "Filename:": "url",
        "SHA256:"  : "sha256"
    }

    _separator = ": "

    def __init__(self, contents: str, urlPrefix: str):
        """Initialise an Index with its contents and the Url that Filenames are relative to."""
        self._contents = contents
        self._urlPrefix = urlPrefix

    def GetPackages(self) -> list:
        """Get all Packages listed in the Index, in the order they are listed."""

        packages = [] # type: list[PackageEntry]

        for paragraph in self._contents.split("\n\n"):
            if not paragraph.strip():
                continue

            fields = dict.fromkeys(self._fields.values(), "")

            for line in paragraph.split("\n"):
                for prefix, field in self._fields.items():
                    if line.startswith(prefix):
                        if self._separator not in line:
                            raise IndexFormatError(f"Malformed line '{line}' in Index from {self._urlPrefix}")

                        fields[field] = line.split(self._separator, 1)[1]
                        break

            if fields["url"]:
                fields["url"] = f"{self._urlPrefix}/{fields['url']}"

            packages.append(PackageEntry(fields["name"], fields["version"], fields["url"], fields["sha256"]))

        return packages

def ParsePackagesFile(urlPrefix: str, contents) -> RepositorySnapshot:
    """Parse a Packages Index, given as text or UTF-8 bytes, into a RepositorySnapshot."""
    if isinstance(contents, bytes):
        try:
            contents = contents.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"Index from {urlPrefix} is not valid UTF-8: {e}") from e

    return RepositorySnapshot(Index(contents, urlPrefix).GetPackages())

def ResolveProviders(lists: PackageLists, providerNames: list) -> list:
    """
        Select the Providers to synchronise.

        All Providers are returned when no names are requested. Otherwise
        the requested Providers are returned in manifest order.
    """
    availableNames = lists.Names

    for providerName in providerNames:
        if providerName not in availableNames:
            raise UnknownProviderError(providerName, availableNames)

    if not providerNames:
        return list(lists.Providers)

    return [x for x in lists.Providers if x.Name in providerNames]

@dataclass(frozen=True)
class Found:
    """An Index file retrieved from a Provider."""
    Payload: bytes
    Format: CompressionFormat
    Url: str

@dataclass(frozen=True)
class NotFound:
    """No variant of an Index file exists on a Provider."""
    Urls: tuple

class Downloader:
    """Performs HTTP requests."""

    # Statuses retried before the response is returned
    _retryStatus = [429, 500, 502, 503, 504]

    def __init__(self, timeout: int = 30, retries: int = 3):
        self._timeout = timeout
        self._retries = retries

    def _Session(self) -> requests.Session:
        """Create a Session with the configured retry policy."""
        retry = Retry(
            total=self._retries,
            backoff_factor=1,
            status_forcelist=self._retryStatus,
            allowed_methods=["GET"],
            raise_on_status=False
        )

        session = requests.Session()
        session.headers["User-Agent"] = USER_AGENT
        adapter = HTTPAdapter(max_retries=retry)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        return session

    def Get(self, url: str) -> requests.Response:
        """
            Get a Url, following redirects.

            Raises DownloadError if no response was received.
        """
        try:
            with self._Session() as session:
                return session.get(url, timeout=self._timeout)
        except requests.RequestException as e:
            raise DownloadError(f"Could not download file {url}: {e}") from e

    def DownloadFile(self, path: str, url: str, followRedirects: bool, compress: bool) -> str:
        """
            Download a file into a directory, keeping its remote filename.

            When followRedirects is set, the filename is taken from the Url
            after redirection. When compress is set, the file is stored zstd
            compressed with ".zst" appended to its name.

            Returns the path of the written file.
        """
        response = self.Get(url)

        if followRedirects:
            url = response.url

        if response.status_code != 200:
            raise DownloadError(f"Could not download file {url}")

        filename = os.path.basename(urlsplit(url).path)
        if not filename:
            raise DownloadError(f"Could not determine a filename for {url}")

        return WriteFile(os.path.join(path, filename), response.content, compress)

class Fetcher:
    """Synchronises a single SyncJob into a directory tree."""

    # Tried in order, the first that exists is used
    _suffixes = ["", CompressionFormat.Xz.value, CompressionFormat.Gzip.value]

    def __init__(self, rootPath: str, downloader: Downloader = None, log: logging.Logger = None):
        self._rootPath = rootPath
        self._downloader = downloader or Downloader()
        self._logger = log or logger

    @property
    def RootPath(self) -> str:
        return self._rootPath

    def Fetch(self, job: SyncJob):
        """Synchronise a job using the strategy selected by its Provider."""
        if job.Provider.Custom:
            self.PullCustomRepository(job)
        else:
            self.PullAptRepository(job)

    @staticmethod
    def PackagesUrl(job: SyncJob) -> str:
        """Get the Url of the uncompressed Packages Index for a job."""
        provider = job.Provider
        return f"{provider.Url}/dists/{job.Distribution}/{job.Component}/binary-{provider.Architecture}/Packages"

    def PullPackagesFile(self, job: SyncJob):
        """
            Retrieve the first available variant of the Packages Index.

            Returns Found for the first variant answered with status 200,
            or NotFound if no variant exists. The compression format is
            taken from the Url after any redirects.
        """
        url = self.PackagesUrl(job)
        urls = [] # type: list[str]

        for suffix in self._suffixes:
            candidate = f"{url}{suffix}"
            urls.append(candidate)

            response = self._downloader.Get(candidate)

            if response.status_code == 200:
                return Found(response.content, CompressionFormat.FromUrl(response.url), response.url)

            self._logger.debug(f"{candidate}: {response.status_code}")

        return NotFound(tuple(urls))

    def PullAptRepository(self, job: SyncJob) -> str:
        """
            Synchronise an APT style repository.

            Returns the path of the written snapshot, or None if there was
            nothing to synchronise.
        """
        result = self.PullPackagesFile(job)

        if isinstance(result, NotFound):
            self._logger.debug(f"No Packages Index found for {job}")
            return None

        snapshot = ParsePackagesFile(job.Provider.Url, DecompressRemote(result.Payload, result.Format))

        if not snapshot.Entries:
            self._logger.debug(f"Packages Index {result.Url} lists no packages")
            return None

        self._logger.info(f"Syncing repository {job}")
        return snapshot.Write(job.SnapshotPath(self._rootPath))

    def PullCustomRepository(self, job: SyncJob) -> str:
        """Download the file listed by a custom repository as is."""
        self._logger.info(f"Syncing repository {job}")

        url = f"{job.Provider.Url}/{job.Distribution}/{job.Component}"
        return self._downloader.DownloadFile(job.Directory(self._rootPath), url, False, True)

class Synchroniser:
    """
        Synchronises the Providers of a package lists manifest.

        Providers are processed one at a time in manifest order. All jobs of
        a Provider run in parallel, and every job is allowed to finish before
        the first error, if any, is raised. Later Providers are not started
        once an error has been raised.
    """

    def __init__(self, rootPath: str, fetcher: Fetcher = None, log: logging.Logger = None, progress: bool = True):
        if fetcher is not None and fetcher.RootPath != rootPath:
            raise ValueError(f"Fetcher writes to {fetcher.RootPath}, not {rootPath}")

        self._logger = log or logger
        self._fetcher = fetcher or Fetcher(rootPath, log=self._logger)
        self._progress = progress

    def Sync(self, lists: PackageLists, providerNames: list = ()) -> int:
        """Synchronise the requested Providers, or all of them. Returns the number of jobs run."""
        providers = ResolveProviders(lists, list(providerNames))

        operations = 0
        for provider in providers:
            operations += self.SyncProvider(provider)

        return operations

    def SyncProvider(self, provider: Provider) -> int:
        """Run all jobs of a Provider concurrently. Returns the number of jobs run."""
        jobs = provider.Jobs()

        if not jobs:
            self._logger.debug(f"Provider {provider.Name} has nothing to sync")
            return 0

        self._logger.debug(f"Provider {provider.Name}: {len(jobs)} jobs")

        errors = [] # type: list[Exception]

        with ThreadPool(len(jobs)) as pool:
            for job, error in tqdm.tqdm(pool.imap_unordered(self._RunJob, jobs), total=len(jobs), unit=" index", desc=provider.Name, leave=False, disable=not self._progress):
                if error is not None:
                    self._logger.debug(f"{job} failed: {error}")
                    errors.append(error)

        if errors:
            raise errors[0]

        return len(jobs)

    def _RunJob(self, job: SyncJob) -> tuple:
        """Worker method for a single job, used in the thread pool."""
        try:
            self._fetcher.Fetch(job)
        except Exception as e:
            return job, e

        return job, None

def ParsePackageLists(path: str, url: str, downloader: Downloader = None) -> PackageLists:
    """Download the package lists manifest into a directory and parse it."""
    downloader = downloader or Downloader()

    logger.info(f"Syncing lists: {url}")

    listsFile = downloader.DownloadFile(path, url, True, True)

    return PackageLists.Parse(DecompressFile(listsFile))

class LogFilter(logging.Filter):
    """Passes records at or above a minimum level, whatever the level of their logger."""

    def __init__(self, level: int):
        super().__init__()
        self._level = level

    @property
    def Level(self) -> int:
        return self._level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= self._level
