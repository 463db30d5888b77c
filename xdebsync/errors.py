"""Exceptions raised by Xdebsync."""

class XdebSyncError(Exception):
    """Base class for all errors reported to the user."""

class ManifestError(XdebSyncError):
    """The package lists manifest is malformed."""

class UnknownProviderError(XdebSyncError):
    """A requested Provider is not listed in the manifest."""

    def __init__(self, providerName: str, availableNames: list):
        self._providerName = providerName
        self._availableNames = list(availableNames)

        super().__init__(f"Provider {providerName} not supported. Omit or use any of {self._availableNames}")

    @property
    def ProviderName(self) -> str:
        """Gets the name that could not be found."""
        return self._providerName

    @property
    def AvailableNames(self) -> list:
        """Gets the names of all Providers in the manifest."""
        return self._availableNames

class DownloadError(XdebSyncError):
    """A remote file could not be retrieved."""

class DecodeError(XdebSyncError):
    """A payload could not be decompressed or decoded."""

class UnsupportedFormatError(XdebSyncError):
    """A compression format is not supported."""

class IndexFormatError(XdebSyncError):
    """A Packages index contains a malformed line."""

class WriteError(XdebSyncError):
    """A file could not be written to disk."""
