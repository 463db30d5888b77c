"""Unit Test Cases for the Helpers module."""

import unittest
import gzip
import lzma
import os
import tempfile

from xdebsync import helpers
from xdebsync.helpers import CompressionFormat
from xdebsync.errors import DecodeError, UnsupportedFormatError, WriteError

class TestHelpers_Compression(unittest.TestCase):
    """Test case for the zstd Compress and Decompress methods."""

    _payloads = [
        b"",
        b"a",
        b"Package: hello\nVersion: 1.0\n\n" * 500,
        bytes(range(256)) * 64
    ]

    def test_RoundTrip(self):
        """Check that decompressing compressed data returns the original data."""

        for payload in self._payloads:
            with self.subTest(size=len(payload)):
                self.assertEqual(helpers.Decompress(helpers.Compress(payload)), payload)

    def test_CompressIsSmaller(self):
        """Check that repetitive data is compressed."""

        payload = self._payloads[2]

        self.assertLess(len(helpers.Compress(payload)), len(payload))

    def test_DecompressGarbage(self):
        """Check that data which is not zstd raises DecodeError."""

        self.assertRaises(DecodeError, helpers.Decompress, b"This is not zstd data")

    def test_DecompressEmpty(self):
        """Check that an empty payload is not a valid frame."""

        self.assertRaises(DecodeError, helpers.Decompress, b"")

    def test_DecompressOtherFormat(self):
        """Check that gzip data is rejected by the zstd codec."""

        self.assertRaises(DecodeError, helpers.Decompress, gzip.compress(b"data"))

    def test_DecompressTrailingData(self):
        """Check that bytes after a complete frame raise DecodeError."""

        self.assertRaises(DecodeError, helpers.Decompress, helpers.Compress(b"abc") + b"garbage")

class TestHelpers_DecompressRemote(unittest.TestCase):
    """Test case for the DecompressRemote method."""

    _data = b"Package: hello\nVersion: 2.10-2\n"

    def test_Plain(self):
        """Check that plain data is passed through."""

        self.assertEqual(helpers.DecompressRemote(self._data, CompressionFormat.Plain), self._data)

    def test_Xz(self):
        """Check that xz data is decompressed."""

        self.assertEqual(helpers.DecompressRemote(lzma.compress(self._data), CompressionFormat.Xz), self._data)

    def test_Gzip(self):
        """Check that gzip data is decompressed."""

        self.assertEqual(helpers.DecompressRemote(gzip.compress(self._data), CompressionFormat.Gzip), self._data)

    def test_SuffixHint(self):
        """Check that the suffix of a format is accepted as a hint."""

        self.assertEqual(helpers.DecompressRemote(gzip.compress(self._data), ".gz"), self._data)
        self.assertEqual(helpers.DecompressRemote(self._data, ""), self._data)

    def test_Unsupported(self):
        """Check that unknown formats raise UnsupportedFormatError."""

        for hint in [".bz2", ".lzma", "gz", None]:
            with self.subTest(hint=hint):
                self.assertRaises(UnsupportedFormatError, helpers.DecompressRemote, self._data, hint)

    def test_Corrupt(self):
        """Check that corrupt compressed data raises DecodeError."""

        self.assertRaises(DecodeError, helpers.DecompressRemote, self._data, CompressionFormat.Xz)
        self.assertRaises(DecodeError, helpers.DecompressRemote, self._data, CompressionFormat.Gzip)
        self.assertRaises(DecodeError, helpers.DecompressRemote, gzip.compress(self._data)[:-6], CompressionFormat.Gzip)

class TestHelpers_CompressionFormat(unittest.TestCase):
    """Test case for the CompressionFormat.FromUrl method."""

    _urls = [
        ("http://mirror.test/dists/stable/main/binary-amd64/Packages", CompressionFormat.Plain),
        ("http://mirror.test/dists/stable/main/binary-amd64/Packages.xz", CompressionFormat.Xz),
        ("http://mirror.test/dists/stable/main/binary-amd64/Packages.gz", CompressionFormat.Gzip),
        ("https://cdn.test/blob/Packages.gz?token=abc.xz", CompressionFormat.Gzip),
        ("https://cdn.test/blob/Packages.xz#Packages", CompressionFormat.Xz),
        ("https://cdn.test/Packages.bz2", CompressionFormat.Plain)
    ]

    def test_FromUrl(self):
        """Check that the format is taken from the path of the Url only."""

        for url, expected in self._urls:
            with self.subTest(url=url):
                self.assertEqual(CompressionFormat.FromUrl(url), expected)

class TestHelpers_WriteFile(unittest.TestCase):
    """Test case for the WriteFile and DecompressFile methods."""

    def setUp(self) -> None:
        self._directory = tempfile.TemporaryDirectory()
        return super().setUp()

    def tearDown(self) -> None:
        self._directory.cleanup()
        return super().tearDown()

    def test_WriteCompressed(self):
        """Check that compressed files gain a .zst suffix and can be read back."""

        path = os.path.join(self._directory.name, "a", "b", "file.yaml")

        written = helpers.WriteFile(path, b"xdeb: []\n", True)

        self.assertEqual(written, f"{path}.zst")
        self.assertFalse(os.path.exists(path))
        self.assertEqual(helpers.DecompressFile(written), b"xdeb: []\n")

    def test_WriteUncompressed(self):
        """Check that uncompressed files are written as is."""

        path = os.path.join(self._directory.name, "file")

        written = helpers.WriteFile(path, b"raw", False)

        self.assertEqual(written, path)
        with open(path, "rb") as f:
            self.assertEqual(f.read(), b"raw")

    def test_WriteReplaces(self):
        """Check that an existing file is replaced and no temporary files remain."""

        path = os.path.join(self._directory.name, "file")

        helpers.WriteFile(path, b"old contents", False)
        helpers.WriteFile(path, b"new", False)

        with open(path, "rb") as f:
            self.assertEqual(f.read(), b"new")
        self.assertListEqual(os.listdir(self._directory.name), ["file"])

    def test_WriteParentIsFile(self):
        """Check that a file in place of a parent directory raises WriteError naming the path."""

        parent = os.path.join(self._directory.name, "custom")
        with open(parent, "w") as f:
            f.write("not a directory")

        path = os.path.join(parent, "stable", "packages.yaml")

        with self.assertRaises(WriteError) as context:
            helpers.WriteFile(path, b"data", True)

        self.assertIn(f"{path}.zst", str(context.exception))

    def test_WriteTargetIsDirectory(self):
        """Check that a failed replace raises WriteError and removes the temporary file."""

        path = os.path.join(self._directory.name, "file")
        os.makedirs(path)

        self.assertRaises(WriteError, helpers.WriteFile, path, b"data", False)
        self.assertListEqual(os.listdir(self._directory.name), ["file"])

class TestHelpers_ConvertSize(unittest.TestCase):
    """Test case for the ConvertSize method."""

    def test_ConvertSize(self):

        self.assertEqual(helpers.ConvertSize(512), "512.0 B")
        self.assertEqual(helpers.ConvertSize(1536), "1.5 KB")
        self.assertEqual(helpers.ConvertSize(3 * pow(1024, 2)), "3.0 MB")

    def test_ConvertSize_MassiveValue(self):

        # Values greater than 1023 YB shall be expressed in terms of YB
        self.assertEqual(helpers.ConvertSize(pow(2, 90)), "1024.0 YB")

    def test_ConvertSize_NegativeValue(self):

        self.assertEqual(helpers.ConvertSize(0), "0 B")
        self.assertEqual(helpers.ConvertSize(-1), "0 B")
